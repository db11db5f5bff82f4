"""Unified CLI for repohub.

Usage:
    repohub graph layers
    repohub graph order
    repohub graph affected <repo> [--json]
    repohub graph check
    repohub cascade plan <repo> [--wait-ci] [--run-tests] [--prefix P] [--json]
    repohub cascade run <repo> [--wait-ci] [--run-tests] [--prefix P] [--parallel N]
    repohub cascade history [--limit N] [--offset N] [--json]
"""

import argparse
import logging
import sys

from repohub_engine.cascade.models import DEFAULT_COMMIT_PREFIX
from repohub_engine.cli.cascade import cmd_cascade_history, cmd_cascade_plan, cmd_cascade_run
from repohub_engine.cli.graph import (
    cmd_graph_affected,
    cmd_graph_check,
    cmd_graph_layers,
    cmd_graph_order,
)


def _add_cascade_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("repo", help="Source repository id")
    parser.add_argument(
        "--wait-ci", action="store_true",
        help="Poll CI after each layer and adopt published versions",
    )
    parser.add_argument(
        "--run-tests", action="store_true",
        help="Run the test command before committing",
    )
    parser.add_argument(
        "--prefix", default=DEFAULT_COMMIT_PREFIX,
        help=f"Commit message prefix (default '{DEFAULT_COMMIT_PREFIX}')",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repohub",
        description="Dependency-aware update cascades across many repositories",
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to project.yaml",
    )
    parser.add_argument(
        "--root", default=None,
        help="Workspace root directory",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    sub = parser.add_subparsers(dest="command")

    # graph
    graph = sub.add_parser("graph", help="Dependency graph operations")
    graph_sub = graph.add_subparsers(dest="subcommand")
    graph_sub.add_parser("layers", help="Show topological layers")
    graph_sub.add_parser("order", help="Show a flat topological order")
    aff = graph_sub.add_parser("affected", help="Show repos affected by a change")
    aff.add_argument("repo", help="Repository id")
    aff.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    graph_sub.add_parser("check", help="Validate the dependency graph")

    # cascade
    cas = sub.add_parser("cascade", help="Cascade update operations")
    cas_sub = cas.add_subparsers(dest="subcommand")

    plan = cas_sub.add_parser("plan", help="Preview a cascade plan")
    _add_cascade_options(plan)
    plan.add_argument("--json", action="store_true", help="Output machine-readable JSON")

    run = cas_sub.add_parser("run", help="Plan and execute a cascade")
    _add_cascade_options(run)
    run.add_argument(
        "--parallel", type=int, default=None,
        help="Max repos updated at once within a layer (1-20)",
    )

    hist = cas_sub.add_parser("history", help="List past cascade runs")
    hist.add_argument("--limit", type=int, default=20, help="Entries per page (default 20)")
    hist.add_argument("--offset", type=int, default=0, help="Entries to skip")
    hist.add_argument("--json", action="store_true", help="Output machine-readable JSON")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    dispatch = {
        ("graph", "layers"): cmd_graph_layers,
        ("graph", "order"): cmd_graph_order,
        ("graph", "affected"): cmd_graph_affected,
        ("graph", "check"): cmd_graph_check,
        ("cascade", "plan"): cmd_cascade_plan,
        ("cascade", "run"): cmd_cascade_run,
        ("cascade", "history"): cmd_cascade_history,
    }

    subcommand: str | None = getattr(args, "subcommand", None)
    handler = dispatch.get((args.command, subcommand or ""))
    if handler:
        return handler(args)

    parser.parse_args([args.command, "--help"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
