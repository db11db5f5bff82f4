"""Graph module — dependency model, layering, affected-set analysis."""

from repohub_engine.graph.model import (
    DependencyEdge,
    DependencyGraph,
    InternalDependency,
    RepoNode,
    build_graph,
    calculate_layers,
    derive_dependents,
    find_cycles,
    topological_sort,
)
from repohub_engine.graph.resolver import AffectedRepo, AffectedResult, DependencyResolver
from repohub_engine.graph.check import GraphCheckResult, check_graph

__all__ = [
    "DependencyEdge",
    "DependencyGraph",
    "InternalDependency",
    "RepoNode",
    "build_graph",
    "calculate_layers",
    "derive_dependents",
    "find_cycles",
    "topological_sort",
    "AffectedRepo",
    "AffectedResult",
    "DependencyResolver",
    "GraphCheckResult",
    "check_graph",
]
