"""Dependency cascade execution planning."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from repohub_engine.cascade.models import (
    DEFAULT_COMMIT_PREFIX,
    CascadeLayer,
    CascadePlan,
    CascadeStep,
    DepUpdate,
)
from repohub_engine.graph.model import RepoNode
from repohub_engine.graph.resolver import DependencyResolver

logger = logging.getLogger(__name__)

# package name -> latest published version, or None
VersionLookup = Callable[[str], Awaitable["str | None"]]


@dataclass
class PlanOptions:
    wait_for_ci: bool = False
    run_tests: bool = False
    commit_prefix: str = DEFAULT_COMMIT_PREFIX


def short_name(npm_name: str) -> str:
    """``@scope/lib-a`` -> ``lib-a``."""
    return npm_name.split("/")[-1]


def commit_message_for(repo_id: str, updates: list[DepUpdate], prefix: str) -> str:
    names = ", ".join(short_name(u.npm_name) for u in updates)
    return f"{prefix}update {names or repo_id}"


async def create_plan(
    source_repo_id: str,
    nodes: list[RepoNode],
    resolver: DependencyResolver,
    options: PlanOptions | None = None,
    latest_version: VersionLookup | None = None,
) -> CascadePlan:
    """Build a cascade plan from a source repo through every affected repo.

    The source's version comes from the package registry when
    ``latest_version`` answers, otherwise from its local manifest. Later
    layers substitute the current local version of the repos planned
    before them, since those are not yet re-published.

    Args:
        source_repo_id: The repo that changed.
        nodes: All repos in the workspace.
        resolver: Resolver built from ``nodes``.
        options: Execution options stored on the plan.
        latest_version: Registry lookup, called at most once.

    Returns:
        CascadePlan; ``total_repos == 0`` when there is nothing to cascade.
    """
    opts = options or PlanOptions()
    node_map = {n.id: n for n in nodes}
    source = node_map.get(source_repo_id)

    published = None
    if source is not None and latest_version is not None:
        published = await latest_version(source.npm_package)
    source_version = published or (source.version if source else None) or "0.0.0"
    logger.info(
        "Source %s: local=%s, published=%s",
        source_repo_id, source.version if source else None, published,
    )

    affected = resolver.get_affected(source_repo_id)
    layer_map = affected.by_layer()

    resolved_versions: dict[str, str] = {}
    if source is not None:
        resolved_versions[source.npm_package] = source_version

    layers: list[CascadeLayer] = []
    for layer_index in sorted(layer_map):
        steps = []
        for repo_id in layer_map[layer_index]:
            updates: list[DepUpdate] = []
            node = node_map.get(repo_id)
            if node is not None:
                for dep in node.dependencies:
                    version = resolved_versions.get(dep.npm_name)
                    if version:
                        updates.append(DepUpdate(dep.npm_name, dep.version_spec, version))
            steps.append(CascadeStep(
                repo_id=repo_id,
                commit_message=commit_message_for(repo_id, updates, opts.commit_prefix),
                deps_to_update=updates,
            ))

        # Not yet re-published: downstream layers adopt the current local version.
        for step in steps:
            node = node_map.get(step.repo_id)
            if node is not None:
                resolved_versions[node.npm_package] = node.version

        layers.append(CascadeLayer(
            layer_index=layer_index,
            mode="parallel" if len(steps) > 1 else "sequential",
            steps=steps,
        ))

    return CascadePlan(
        source_repo_id=source_repo_id,
        source_commit_message=f"Source: {source_repo_id} v{source_version}",
        layers=layers,
        total_repos=affected.total_count,
        wait_for_ci=opts.wait_for_ci,
        run_tests=opts.run_tests,
        commit_prefix=opts.commit_prefix,
    )


def apply_commit_overrides(plan: CascadePlan, overrides: dict[str, str]) -> int:
    """Replace generated commit messages before the plan is started.

    Returns:
        Number of steps changed.
    """
    changed = 0
    for step in plan.steps():
        message = overrides.get(step.repo_id)
        if message:
            step.commit_message = message
            changed += 1
    return changed
