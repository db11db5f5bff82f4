"""Cascade execution engine.

Runs a plan layer by layer: steps inside a layer share a bounded worker
pool, and no step of layer N+1 starts before every step of layer N has
settled. A layer with failed steps pauses the execution so the user can
skip, set a version, resume or abort.

Executions run as background asyncio tasks; ``start_execution`` must be
called from inside a running event loop.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from repohub_engine.cascade.history import CascadeHistoryEntry, HistoryStore
from repohub_engine.cascade.models import (
    ABORTED,
    COMMITTING,
    COMPLETED,
    DONE,
    EXECUTION_FAILED,
    FAILED,
    INSTALLING,
    PAUSED,
    PENDING,
    PUSHING,
    RUNNING,
    SKIPPED,
    TESTING,
    UPDATING_DEPS,
    WAITING_CI,
    CascadeExecution,
    CascadePlan,
    CascadeStep,
)
from repohub_engine.cascade.planner import PlanOptions, create_plan
from repohub_engine.cascade.state_machine import advance
from repohub_engine.ci.status import (
    CI_FAILURE,
    CI_PENDING,
    CI_SKIPPED,
    CI_SUCCESS,
    CiUnavailableError,
    GhCiClient,
)
from repohub_engine.git import ops as git_ops
from repohub_engine.graph.model import RepoNode
from repohub_engine.graph.resolver import DependencyResolver
from repohub_engine.manifest import update_manifest_dependencies
from repohub_engine.process import CommandError, CommandRunner, run_checked, run_command
from repohub_engine.project_config import DEFAULT_PARALLEL, ProjectConfig, clamp_parallel
from repohub_engine.task_queue import TaskQueue
from repohub_engine.versions import NpmVersionResolver

logger = logging.getLogger(__name__)

CI_POLL_INTERVAL = 15.0
CI_MAX_ATTEMPTS = 80

# Failures of a single step's external work; anything else fails the execution.
STEP_ERRORS = (CommandError, OSError, ValueError)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_execution_id() -> str:
    return f"cascade-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


class ExecutionRegistry:
    """In-memory table of executions, keyed by id."""

    def __init__(self):
        self._executions: dict[str, CascadeExecution] = {}

    def add(self, execution: CascadeExecution) -> None:
        self._executions[execution.id] = execution

    def get(self, execution_id: str) -> CascadeExecution | None:
        return self._executions.get(execution_id)

    def all(self) -> list[CascadeExecution]:
        return list(self._executions.values())

    def __contains__(self, execution_id: str) -> bool:
        return execution_id in self._executions

    def __len__(self) -> int:
        return len(self._executions)


@dataclass
class _Control:
    """Per-execution request flags and the background task driving it."""

    nodes: dict[str, RepoNode]
    abort: bool = False
    pause: bool = False
    cancel: asyncio.Event = field(default_factory=asyncio.Event)
    task: asyncio.Task | None = None


class CascadeEngine:
    """Plans, runs and controls cascade executions."""

    def __init__(
        self,
        history: HistoryStore | None = None,
        version_resolver: NpmVersionResolver | None = None,
        ci_client: GhCiClient | None = None,
        runner: CommandRunner = run_command,
        parallel_limit: int = DEFAULT_PARALLEL,
        install_command: list[str] | None = None,
        test_command: list[str] | None = None,
        poll_interval: float = CI_POLL_INTERVAL,
        max_poll_attempts: int = CI_MAX_ATTEMPTS,
        registry: ExecutionRegistry | None = None,
    ):
        defaults = ProjectConfig()
        self.history = history if history is not None else HistoryStore()
        self.runner = runner
        self.version_resolver = version_resolver or NpmVersionResolver(runner=runner)
        self.ci_client = ci_client or GhCiClient(runner=runner)
        self.parallel_limit = clamp_parallel(parallel_limit)
        self.install_command = list(install_command or defaults.install_command)
        self.test_command = list(test_command or defaults.test_command)
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self.registry = registry if registry is not None else ExecutionRegistry()
        self._controls: dict[str, _Control] = {}

    @classmethod
    def from_config(cls, config: ProjectConfig, **kwargs) -> CascadeEngine:
        runner = kwargs.pop("runner", run_command)
        return cls(
            version_resolver=NpmVersionResolver(config.npm_registry, runner=runner),
            ci_client=GhCiClient(runner=runner),
            runner=runner,
            parallel_limit=config.parallel_tasks,
            install_command=config.install_command,
            test_command=config.test_command,
            **kwargs,
        )

    # ── Planning ─────────────────────────────────────────────────────

    async def create_plan(
        self,
        source_repo_id: str,
        nodes: list[RepoNode],
        resolver: DependencyResolver | None = None,
        options: PlanOptions | None = None,
    ) -> CascadePlan:
        return await create_plan(
            source_repo_id,
            nodes,
            resolver or DependencyResolver(nodes),
            options,
            latest_version=self.version_resolver.latest,
        )

    # ── Lifecycle ────────────────────────────────────────────────────

    def start_execution(self, plan: CascadePlan, nodes: list[RepoNode]) -> str:
        """Register a new execution and run it in the background.

        Returns:
            The execution id.
        """
        execution = CascadeExecution(
            id=new_execution_id(),
            plan=plan,
            status=RUNNING,
            started_at=_now(),
        )
        self.registry.add(execution)
        control = _Control(nodes={n.id: n for n in nodes})
        self._controls[execution.id] = control
        self._spawn(control, self._run(execution, control))
        logger.info(
            "Started cascade %s from %s (%d repos)",
            execution.id, plan.source_repo_id, plan.total_repos,
        )
        return execution.id

    def get_execution(self, execution_id: str) -> CascadeExecution | None:
        """Snapshot of an execution; mutating it has no effect on the run."""
        execution = self.registry.get(execution_id)
        return copy.deepcopy(execution) if execution else None

    def list_executions(self) -> list[CascadeExecution]:
        executions = sorted(self.registry.all(), key=lambda e: e.started_at, reverse=True)
        return [copy.deepcopy(e) for e in executions]

    async def history_entries(self, limit: int = 20, offset: int = 0) -> list[CascadeHistoryEntry]:
        return await self.history.list_entries(limit, offset)

    async def wait(self, execution_id: str) -> CascadeExecution | None:
        """Wait until the execution's background work settles.

        Returns when it is completed, failed, aborted or paused.
        """
        control = self._controls.get(execution_id)
        while control is not None and control.task is not None:
            task = control.task
            await task
            if control.task is task:
                break
        return self.get_execution(execution_id)

    # ── Controls ─────────────────────────────────────────────────────

    def abort(self, execution_id: str) -> bool:
        execution = self.registry.get(execution_id)
        control = self._controls.get(execution_id)
        if execution is None or control is None or execution.status not in (RUNNING, PAUSED):
            return False

        control.abort = True
        control.cancel.set()
        if execution.status == PAUSED:
            self._close(execution, control, ABORTED)
            self._spawn(control, self._save_history(execution))
        logger.info("Abort requested for %s", execution_id)
        return True

    def pause(self, execution_id: str) -> bool:
        execution = self.registry.get(execution_id)
        control = self._controls.get(execution_id)
        if execution is None or control is None or execution.status != RUNNING:
            return False
        control.pause = True
        return True

    def resume(self, execution_id: str) -> bool:
        execution = self.registry.get(execution_id)
        control = self._controls.get(execution_id)
        if execution is None or control is None or execution.status != PAUSED:
            return False
        control.pause = False
        execution.status = RUNNING
        self._spawn(control, self._run(execution, control))
        logger.info("Resumed %s at layer %d", execution_id, execution.current_layer_index)
        return True

    def skip_step(self, execution_id: str, repo_id: str) -> bool:
        execution = self.registry.get(execution_id)
        if execution is None:
            return False
        step = execution.plan.find_step(repo_id)
        if step is None or step.status != FAILED:
            return False
        advance(step, SKIPPED)
        step.completed_at = _now()
        execution.failed_count -= 1
        execution.skipped_count += 1
        return True

    def set_published_version(self, execution_id: str, repo_id: str, version: str) -> bool:
        execution = self.registry.get(execution_id)
        if execution is None:
            return False
        step = execution.plan.find_step(repo_id)
        if step is None:
            return False
        step.published_version = version
        return True

    # ── Execution loop ───────────────────────────────────────────────

    @staticmethod
    def _spawn(control: _Control, coro) -> None:
        control.task = asyncio.get_running_loop().create_task(coro)

    async def _run(self, execution: CascadeExecution, control: _Control) -> None:
        try:
            await self._execute_layers(execution, control)
        except Exception as exc:
            logger.exception("Cascade %s failed", execution.id)
            execution.status = EXECUTION_FAILED
            execution.error = str(exc)
            execution.completed_at = _now()
            control.nodes = {}

    async def _execute_layers(self, execution: CascadeExecution, control: _Control) -> None:
        plan = execution.plan

        for index in range(execution.current_layer_index, len(plan.layers)):
            if control.abort:
                await self._finish(execution, control, ABORTED)
                return
            if control.pause:
                execution.status = PAUSED
                execution.current_layer_index = index
                logger.info("Cascade %s paused before layer %d", execution.id, index)
                return

            execution.current_layer_index = index
            layer = plan.layers[index]
            self._apply_published_versions(plan, index, control)

            runnable = [s for s in layer.steps if s.status in (PENDING, FAILED)]
            if runnable:
                concurrency = (
                    1 if layer.mode == "sequential"
                    else min(self.parallel_limit, len(runnable))
                )

                async def work(step: CascadeStep) -> None:
                    await self._execute_step(step, execution, control)

                for outcome in await TaskQueue(concurrency).run(runnable, work):
                    if outcome.error is not None:
                        raise outcome.error

            if control.abort:
                await self._finish(execution, control, ABORTED)
                return

            failed = [s for s in layer.steps if s.status == FAILED]
            if failed:
                execution.status = PAUSED
                execution.current_layer_index = index
                logger.warning(
                    "Layer %d of %s has %d failed steps, pausing for user action",
                    layer.layer_index, execution.id, len(failed),
                )
                return

            if plan.wait_for_ci:
                for step in layer.steps:
                    if step.status == WAITING_CI:
                        await self._wait_for_ci(step, control)

        if control.abort:
            await self._finish(execution, control, ABORTED)
            return
        await self._finish(execution, control, COMPLETED)

    def _apply_published_versions(
        self,
        plan: CascadePlan,
        index: int,
        control: _Control,
    ) -> None:
        """Point pending substitutions at versions published by earlier layers."""
        published: dict[str, str] = {}
        for layer in plan.layers[:index]:
            for step in layer.steps:
                node = control.nodes.get(step.repo_id)
                if step.published_version and node is not None:
                    published[node.npm_package] = step.published_version

        if not published:
            return
        for step in plan.layers[index].steps:
            if step.status not in (PENDING, FAILED):
                continue
            for dep in step.deps_to_update:
                if dep.npm_name in published:
                    dep.to_version = published[dep.npm_name]

    async def _execute_step(
        self,
        step: CascadeStep,
        execution: CascadeExecution,
        control: _Control,
    ) -> None:
        if control.abort:
            return

        if step.status == FAILED:
            advance(step, PENDING)
            step.error = None
            execution.failed_count -= 1

        step.started_at = _now()
        step.completed_at = None
        node = control.nodes.get(step.repo_id)
        if node is None:
            self._fail(step, execution, "Repo not found")
            return

        cwd = node.absolute_path or node.path
        try:
            advance(step, UPDATING_DEPS)
            await update_manifest_dependencies(cwd, step.deps_to_update)

            advance(step, INSTALLING)
            await run_checked(self.install_command, cwd, runner=self.runner)

            if execution.plan.run_tests:
                advance(step, TESTING)
                await run_checked(self.test_command, cwd, runner=self.runner)

            advance(step, COMMITTING)
            await git_ops.stage_all(cwd, self.runner)
            if not await git_ops.has_changes(cwd, self.runner):
                logger.info("%s: nothing to commit, already up to date", step.repo_id)
                self._succeed(step, execution, DONE)
                return
            await git_ops.commit(cwd, step.commit_message, self.runner)

            advance(step, PUSHING)
            await git_ops.pull_rebase(cwd, self.runner)
            await git_ops.push(cwd, self.runner)
        except STEP_ERRORS as exc:
            self._fail(step, execution, str(exc))
            return

        self._succeed(step, execution, WAITING_CI if execution.plan.wait_for_ci else DONE)

    def _succeed(self, step: CascadeStep, execution: CascadeExecution, status: str) -> None:
        advance(step, status)
        if status == DONE:
            step.completed_at = _now()
        execution.completed_count += 1
        logger.info("%s: %s", step.repo_id, status)

    def _fail(self, step: CascadeStep, execution: CascadeExecution, error: str) -> None:
        advance(step, FAILED)
        step.error = error
        step.completed_at = _now()
        execution.failed_count += 1
        logger.warning("%s failed: %s", step.repo_id, error)

    # ── CI ───────────────────────────────────────────────────────────

    async def _wait_for_ci(self, step: CascadeStep, control: _Control) -> None:
        try:
            if not step.published_version:
                await self._poll_ci(step, control)
        finally:
            if step.status == WAITING_CI:
                advance(step, DONE)
                step.completed_at = _now()

    async def _poll_ci(self, step: CascadeStep, control: _Control) -> None:
        node = control.nodes.get(step.repo_id)
        slug = None
        if node is not None:
            slug = await git_ops.resolve_slug(node.absolute_path or node.path, self.runner)
        if not slug:
            step.ci_status = CI_SKIPPED
            return

        step.ci_status = CI_PENDING
        for _ in range(self.max_poll_attempts):
            if control.abort or await self._sleep(control):
                return

            try:
                run = await self.ci_client.latest_run(slug)
            except CiUnavailableError as exc:
                logger.warning("CI status for %s unavailable: %s", slug, exc)
                step.ci_status = CI_SKIPPED
                return

            step.ci_status = run.status
            step.ci_run_url = run.url
            if run.status == CI_SUCCESS:
                version = await self.version_resolver.latest(node.npm_package)
                if version:
                    step.published_version = version
                return
            if run.status == CI_FAILURE:
                logger.warning("CI failed for %s: %s", step.repo_id, run.url)
                return

        minutes = int(self.poll_interval * self.max_poll_attempts // 60)
        step.ci_status = CI_FAILURE
        step.error = f"CI monitoring timed out after {minutes} minutes"

    async def _sleep(self, control: _Control) -> bool:
        """Sleep one poll interval; True if the execution was cancelled meanwhile."""
        try:
            await asyncio.wait_for(control.cancel.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            return False
        return True

    # ── History ──────────────────────────────────────────────────────

    def _close(self, execution: CascadeExecution, control: _Control, status: str) -> None:
        """Freeze a finished execution: no step may stay parked in waiting-ci."""
        for step in execution.plan.steps():
            if step.status == WAITING_CI:
                advance(step, DONE)
                step.completed_at = _now()
                step.ci_status = CI_SKIPPED
        execution.status = status
        execution.completed_at = _now()
        control.nodes = {}
        logger.info("Cascade %s %s", execution.id, status)

    async def _finish(
        self,
        execution: CascadeExecution,
        control: _Control,
        status: str,
    ) -> None:
        self._close(execution, control, status)
        await self._save_history(execution)

    async def _save_history(self, execution: CascadeExecution) -> None:
        try:
            await self.history.save(CascadeHistoryEntry.from_execution(execution))
        except OSError as exc:
            logger.error("Failed to save history for %s: %s", execution.id, exc)
