"""Dependency graph validation — missing targets, self-deps, cycles."""

from dataclasses import dataclass, field

from repohub_engine.graph.model import RepoNode, calculate_layers, find_cycles


@dataclass
class GraphCheckResult:
    """Result of dependency graph validation."""

    total_edges: int = 0
    missing_targets: list[tuple[str, str]] = field(default_factory=list)
    self_deps: list[str] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)
    unlayered: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return (
            len(self.missing_targets) == 0
            and len(self.self_deps) == 0
            and len(self.cycles) == 0
        )

    @property
    def violations(self) -> list[str]:
        v = []
        for f, t in self.missing_targets:
            v.append(f"Missing target: {f} -> {t}")
        for s in self.self_deps:
            v.append(f"Self-dep: {s}")
        for c in self.cycles:
            v.append(f"Cycle: {' -> '.join(c)}")
        if self.unlayered:
            v.append(f"Not layered (blocked by a cycle): {', '.join(self.unlayered)}")
        return v


def check_graph(nodes: list[RepoNode]) -> GraphCheckResult:
    """Validate the resolved dependency edges of a node set.

    Checks:
    1. All dependency targets exist
    2. No self-dependencies
    3. No circular dependencies (and which repos layering leaves out)
    """
    result = GraphCheckResult()
    known = {n.id for n in nodes}

    for node in nodes:
        for dep_id in node.resolved_dependency_ids():
            result.total_edges += 1
            if dep_id not in known:
                result.missing_targets.append((node.id, dep_id))
            if dep_id == node.id:
                result.self_deps.append(node.id)

    result.cycles = find_cycles(nodes)

    placed = {i for ids in calculate_layers(nodes).values() for i in ids}
    result.unlayered = [n.id for n in nodes if n.id not in placed]

    return result
