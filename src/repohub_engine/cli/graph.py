"""Dependency graph CLI commands."""

import argparse
import json

from repohub_engine.cli.common import load_config, load_nodes


def cmd_graph_layers(args: argparse.Namespace) -> int:
    from repohub_engine.graph.model import build_graph

    nodes = load_nodes(args, load_config(args))
    if nodes is None:
        return 1

    graph = build_graph(nodes)
    print(graph.summary())
    if graph.unlayered:
        print(f"\n  Not layered: {', '.join(graph.unlayered)}")
    return 0


def cmd_graph_order(args: argparse.Namespace) -> int:
    from repohub_engine.graph.model import topological_sort

    nodes = load_nodes(args, load_config(args))
    if nodes is None:
        return 1

    for i, repo_id in enumerate(topological_sort(nodes), 1):
        print(f"  {i:>3}. {repo_id}")
    return 0


def cmd_graph_affected(args: argparse.Namespace) -> int:
    from repohub_engine.graph.resolver import DependencyResolver

    nodes = load_nodes(args, load_config(args))
    if nodes is None:
        return 1

    result = DependencyResolver(nodes).get_affected(args.repo)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(result.summary())
    return 0


def cmd_graph_check(args: argparse.Namespace) -> int:
    from repohub_engine.graph.check import check_graph

    nodes = load_nodes(args, load_config(args))
    if nodes is None:
        return 1

    result = check_graph(nodes)

    print("Dependency Graph Validation")
    print("─" * 40)
    print(f"  Repos: {len(nodes)}")
    print(f"  Total edges: {result.total_edges}")
    print(f"  Missing targets: {len(result.missing_targets)}")
    print(f"  Self-dependencies: {len(result.self_deps)}")
    print(f"  Cycles: {len(result.cycles)}")

    if result.violations:
        print("\n  Violations:")
        for v in result.violations:
            print(f"    {v}")

    print(f"\n  Result: {'PASS' if result.passed else 'FAIL'}")
    return 0 if result.passed else 1
