"""Dependency graph model — edges, Kahn layering, cycle detection."""

from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass, field, replace


@dataclass
class InternalDependency:
    """A dependency entry from a package manifest.

    ``repo_id`` is empty when the target is not a repo in the workspace.
    """

    npm_name: str
    repo_id: str = ""
    version_spec: str = ""

    def to_dict(self) -> dict:
        return {
            "npm_name": self.npm_name,
            "repo_id": self.repo_id,
            "version_spec": self.version_spec,
        }


@dataclass
class RepoNode:
    """A single repository in the workspace."""

    id: str
    npm_package: str
    version: str = "0.0.0"
    dependencies: list[InternalDependency] = field(default_factory=list)
    dependents: list[str] = field(default_factory=list)
    path: str = ""
    absolute_path: str = ""

    def resolved_dependency_ids(self) -> list[str]:
        return [d.repo_id for d in self.dependencies if d.repo_id]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "npm_package": self.npm_package,
            "version": self.version,
            "dependencies": [d.to_dict() for d in self.dependencies],
            "dependents": list(self.dependents),
            "path": self.path,
            "absolute_path": self.absolute_path,
        }


@dataclass
class DependencyEdge:
    """``from_id`` depends on ``to_id``."""

    from_id: str
    to_id: str
    version_spec: str = ""


@dataclass
class DependencyGraph:
    """Full dependency graph with topological layers."""

    nodes: list[RepoNode] = field(default_factory=list)
    edges: list[DependencyEdge] = field(default_factory=list)
    layers: dict[int, list[str]] = field(default_factory=dict)
    cycles: list[list[str]] = field(default_factory=list)

    @property
    def unlayered(self) -> list[str]:
        """Node ids that Kahn peeling never reached (cycle members and their dependents)."""
        placed = {node_id for ids in self.layers.values() for node_id in ids}
        return [n.id for n in self.nodes if n.id not in placed]

    def summary(self) -> str:
        lines = [
            f"Dependency Graph: {len(self.nodes)} repos, {len(self.edges)} edges, "
            f"{len(self.layers)} layers",
        ]
        for index in sorted(self.layers):
            ids = self.layers[index]
            lines.append(f"  Layer {index} ({len(ids)}): {', '.join(ids)}")
        if self.cycles:
            lines.append(f"\nCycles: {len(self.cycles)}")
            for c in self.cycles:
                lines.append(f"  {' -> '.join(c)}")
        return "\n".join(lines)


def derive_dependents(nodes: list[RepoNode]) -> list[RepoNode]:
    """Return copies of ``nodes`` with ``dependents`` recomputed.

    ``dependents`` becomes the exact inverse of the resolved dependency
    entries; any previous value is discarded.
    """
    inverse: dict[str, list[str]] = defaultdict(list)
    known = {n.id for n in nodes}
    for node in nodes:
        for dep_id in node.resolved_dependency_ids():
            if dep_id in known and node.id not in inverse[dep_id]:
                inverse[dep_id].append(node.id)

    return [replace(n, dependents=list(inverse.get(n.id, []))) for n in nodes]


def _adjacency(nodes: list[RepoNode]) -> tuple[dict[str, int], dict[str, list[str]]]:
    """In-degree per node and dependency -> dependents adjacency, in node order."""
    in_degree: dict[str, int] = {}
    adj: dict[str, list[str]] = defaultdict(list)
    for node in nodes:
        dep_ids = node.resolved_dependency_ids()
        in_degree[node.id] = len(dep_ids)
        for dep_id in dep_ids:
            adj[dep_id].append(node.id)
    return in_degree, adj


def build_edges(nodes: list[RepoNode]) -> list[DependencyEdge]:
    """One edge per resolved dependency entry; duplicates are kept."""
    edges = []
    for node in nodes:
        for dep in node.dependencies:
            if dep.repo_id:
                edges.append(DependencyEdge(node.id, dep.repo_id, dep.version_spec))
    return edges


def calculate_layers(nodes: list[RepoNode]) -> dict[int, list[str]]:
    """Group nodes into topological layers by Kahn peeling.

    Layer 0 holds nodes without resolved internal dependencies. Nodes that
    never reach in-degree 0 (cycles) are left out of every layer.
    """
    in_degree, adj = _adjacency(nodes)

    layers: dict[int, list[str]] = {}
    current = 0
    queue = [n.id for n in nodes if in_degree.get(n.id, 0) == 0]

    while queue:
        layers[current] = list(queue)
        next_queue: list[str] = []
        for node_id in queue:
            for dependent in adj.get(node_id, []):
                remaining = in_degree.get(dependent, 1) - 1
                in_degree[dependent] = remaining
                if remaining == 0:
                    next_queue.append(dependent)
        queue = next_queue
        current += 1

    return layers


def topological_sort(nodes: list[RepoNode]) -> list[str]:
    """Flat Kahn ordering: every dependency precedes its dependents."""
    in_degree, adj = _adjacency(nodes)

    ordered: list[str] = []
    queue = deque(n.id for n in nodes if in_degree.get(n.id, 0) == 0)
    while queue:
        node_id = queue.popleft()
        ordered.append(node_id)
        for dependent in adj.get(node_id, []):
            remaining = in_degree.get(dependent, 1) - 1
            in_degree[dependent] = remaining
            if remaining == 0:
                queue.append(dependent)

    return ordered


def find_cycles(nodes: list[RepoNode]) -> list[list[str]]:
    """Report dependency cycles using DFS with colouring.

    Each cycle is returned as a closed path, e.g. ``["a", "b", "a"]``.
    """
    adj: dict[str, list[str]] = defaultdict(list)
    for node in nodes:
        adj[node.id].extend(node.resolved_dependency_ids())

    WHITE, GRAY, BLACK = 0, 1, 2
    color: dict[str, int] = defaultdict(lambda: WHITE)
    cycles: list[list[str]] = []

    def dfs(node_id: str, path: list[str]) -> None:
        color[node_id] = GRAY
        path.append(node_id)
        for neighbor in adj[node_id]:
            if color[neighbor] == GRAY:
                start = path.index(neighbor)
                cycles.append(path[start:] + [neighbor])
            elif color[neighbor] == WHITE:
                dfs(neighbor, path)
        path.pop()
        color[node_id] = BLACK

    for node in nodes:
        if color[node.id] == WHITE:
            dfs(node.id, [])

    return cycles


def build_graph(nodes: list[RepoNode]) -> DependencyGraph:
    """Build edges, layers and the cycle report for a node set."""
    return DependencyGraph(
        nodes=list(nodes),
        edges=build_edges(nodes),
        layers=calculate_layers(nodes),
        cycles=find_cycles(nodes),
    )
