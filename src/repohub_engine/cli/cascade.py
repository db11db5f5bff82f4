"""Cascade CLI commands."""

import argparse
import asyncio
import json

from repohub_engine.cli.common import load_config, load_nodes


def _plan_options(args: argparse.Namespace):
    from repohub_engine.cascade.planner import PlanOptions

    return PlanOptions(
        wait_for_ci=args.wait_ci,
        run_tests=args.run_tests,
        commit_prefix=args.prefix,
    )


def _print_execution(execution) -> None:
    print(f"\n  Cascade {execution.id}: {execution.status.upper()}")
    print(f"  {'─' * 50}")
    for layer in execution.plan.layers:
        print(f"  Layer {layer.layer_index} [{layer.mode}]")
        for step in layer.steps:
            line = f"    {step.repo_id:<30} {step.status}"
            if step.ci_status:
                line += f"  (CI: {step.ci_status})"
            if step.published_version:
                line += f"  -> {step.published_version}"
            print(line)
            if step.error:
                print(f"      {step.error}")
    print(
        f"\n  {execution.completed_count} done, {execution.failed_count} failed, "
        f"{execution.skipped_count} skipped"
    )
    if execution.error:
        print(f"  Error: {execution.error}")


def cmd_cascade_plan(args: argparse.Namespace) -> int:
    from repohub_engine.cascade.engine import CascadeEngine

    config = load_config(args)
    nodes = load_nodes(args, config)
    if nodes is None:
        return 1

    engine = CascadeEngine.from_config(config)
    plan = asyncio.run(engine.create_plan(args.repo, nodes, options=_plan_options(args)))
    if args.json:
        print(json.dumps(plan.to_dict(), indent=2))
    else:
        print(plan.summary())
    return 0


async def _run_cascade(engine, repo_id: str, nodes, options) -> int:
    plan = await engine.create_plan(repo_id, nodes, options=options)
    if plan.total_repos == 0:
        print(f"  Nothing to cascade: no repos depend on '{repo_id}'")
        return 0

    print(plan.summary())
    execution_id = engine.start_execution(plan, nodes)
    execution = await engine.wait(execution_id)

    if execution.status == "paused":
        # No one to ask interactively: stop here and keep the record.
        engine.abort(execution_id)
        execution = await engine.wait(execution_id)

    _print_execution(execution)
    return 0 if execution.status == "completed" else 1


def cmd_cascade_run(args: argparse.Namespace) -> int:
    from repohub_engine.cascade.engine import CascadeEngine
    from repohub_engine.project_config import clamp_parallel

    config = load_config(args)
    nodes = load_nodes(args, config)
    if nodes is None:
        return 1

    if args.parallel is not None:
        config.parallel_tasks = clamp_parallel(args.parallel)

    engine = CascadeEngine.from_config(config)
    return asyncio.run(_run_cascade(engine, args.repo, nodes, _plan_options(args)))


def cmd_cascade_history(args: argparse.Namespace) -> int:
    from repohub_engine.cascade.history import HistoryStore

    entries = asyncio.run(HistoryStore().list_entries(args.limit, args.offset))
    if args.json:
        print(json.dumps([e.to_dict() for e in entries], indent=2))
        return 0

    if not entries:
        print("  No cascade history.")
        return 0

    for e in entries:
        print(
            f"  {e.started_at[:19]}  {e.id:<32} {e.source_repo_id:<24} "
            f"{e.status:<10} {e.completed_count}/{e.total_repos} done, "
            f"{e.failed_count} failed"
        )
    return 0
