"""Affected-set analysis over the dependency graph.

Determines which repositories must be updated when a given repo changes,
how far downstream each one sits, and the dependency path that reaches it.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from repohub_engine.graph.model import (
    DependencyGraph,
    RepoNode,
    build_graph,
    calculate_layers,
    topological_sort,
)


@dataclass
class AffectedRepo:
    id: str
    layer: int
    dependency_path: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"id": self.id, "layer": self.layer, "dependency_path": list(self.dependency_path)}


@dataclass
class AffectedResult:
    source_id: str
    affected: list[AffectedRepo] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        return len(self.affected)

    def by_layer(self) -> dict[int, list[str]]:
        grouped: dict[int, list[str]] = {}
        for a in self.affected:
            grouped.setdefault(a.layer, []).append(a.id)
        return grouped

    def summary(self) -> str:
        lines = [f"Affected by: {self.source_id}"]
        if not self.affected:
            lines.append("  No downstream dependents found.")
            return "\n".join(lines)

        lines.append(f"  {self.total_count} repositories affected:")
        for layer, ids in sorted(self.by_layer().items()):
            lines.append(f"\n  Layer {layer}")
            for a in self.affected:
                if a.layer == layer:
                    lines.append(f"    {a.id:<30} {' -> '.join(a.dependency_path)}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "source_id": self.source_id,
            "affected": [a.to_dict() for a in self.affected],
            "total_count": self.total_count,
        }


class DependencyResolver:
    """Query helper bound to one snapshot of the node set."""

    def __init__(self, nodes: list[RepoNode]):
        self.nodes = list(nodes)
        self._node_map = {n.id: n for n in self.nodes}

    def get(self, repo_id: str) -> RepoNode | None:
        return self._node_map.get(repo_id)

    def build_graph(self) -> DependencyGraph:
        return build_graph(self.nodes)

    def calculate_layers(self) -> dict[int, list[str]]:
        return calculate_layers(self.nodes)

    def topological_sort(self) -> list[str]:
        return topological_sort(self.nodes)

    def get_dependencies(self, repo_id: str) -> list[str]:
        node = self._node_map.get(repo_id)
        if node is None:
            return []
        return node.resolved_dependency_ids()

    def get_dependents(self, repo_id: str) -> list[str]:
        node = self._node_map.get(repo_id)
        if node is None:
            return []
        return list(node.dependents)

    def _dependents_of(self, repo_id: str) -> list[str]:
        node = self._node_map.get(repo_id)
        return node.dependents if node is not None else []

    def _reachable(self, source_id: str) -> tuple[list[str], dict[str, int], dict[str, list[str]]]:
        """Breadth-first walk of ``dependents``.

        Returns discovery order, shortest distance and shortest path per repo.
        """
        order: list[str] = []
        distance = {source_id: 0}
        paths = {source_id: [source_id]}
        queue = deque([source_id])
        while queue:
            current = queue.popleft()
            for dependent in self._dependents_of(current):
                if dependent in distance:
                    continue
                distance[dependent] = distance[current] + 1
                paths[dependent] = paths[current] + [dependent]
                order.append(dependent)
                queue.append(dependent)
        return order, distance, paths

    def get_affected(self, source_id: str) -> AffectedResult:
        """Every repo that transitively depends on ``source_id``.

        Direct dependents are layer 1. Each repo is reported once, one layer
        below the deepest affected repo it depends on, so a repo never shares
        a layer with (or precedes) something it consumes. Its
        ``dependency_path`` runs through that deepest dependency, the first
        one found on ties. Repos caught in a dependency cycle fall back to
        their shortest distance from the source.
        """
        result = AffectedResult(source_id=source_id)
        if source_id not in self._node_map:
            return result

        order, distance, shortest = self._reachable(source_id)
        reachable = set(order)

        remaining = dict.fromkeys(order, 0)
        for repo_id in [source_id] + order:
            for dependent in self._dependents_of(repo_id):
                if dependent in reachable:
                    remaining[dependent] += 1

        layer = {source_id: 0}
        paths = {source_id: [source_id]}
        queue = deque([source_id])
        while queue:
            current = queue.popleft()
            for dependent in self._dependents_of(current):
                if dependent not in reachable:
                    continue
                if layer.get(dependent, 0) < layer[current] + 1:
                    layer[dependent] = layer[current] + 1
                    paths[dependent] = paths[current] + [dependent]
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    queue.append(dependent)

        for repo_id in order:
            if remaining[repo_id] > 0:
                layer[repo_id] = distance[repo_id]
                paths[repo_id] = shortest[repo_id]

        position = {repo_id: i for i, repo_id in enumerate(order)}
        for repo_id in sorted(order, key=lambda r: (layer[r], position[r])):
            result.affected.append(AffectedRepo(repo_id, layer[repo_id], paths[repo_id]))

        return result
