"""Cascade plan and execution data model."""

from __future__ import annotations

from dataclasses import dataclass, field

# Step statuses
PENDING = "pending"
UPDATING_DEPS = "updating-deps"
INSTALLING = "installing"
TESTING = "testing"
COMMITTING = "committing"
PUSHING = "pushing"
WAITING_CI = "waiting-ci"
DONE = "done"
FAILED = "failed"
SKIPPED = "skipped"

# Execution statuses
RUNNING = "running"
PAUSED = "paused"
COMPLETED = "completed"
ABORTED = "aborted"
EXECUTION_FAILED = "failed"

TERMINAL_EXECUTION_STATES = {COMPLETED, ABORTED, EXECUTION_FAILED}

DEFAULT_COMMIT_PREFIX = "deps: "


@dataclass
class DepUpdate:
    """One dependency version substitution within a step."""

    npm_name: str
    from_version: str
    to_version: str

    def to_dict(self) -> dict:
        return {
            "npm_name": self.npm_name,
            "from_version": self.from_version,
            "to_version": self.to_version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> DepUpdate:
        return cls(data["npm_name"], data.get("from_version", ""), data.get("to_version", ""))


@dataclass
class CascadeStep:
    """One repo's pending work within a plan. Mutated by the engine only."""

    repo_id: str
    commit_message: str
    deps_to_update: list[DepUpdate] = field(default_factory=list)
    status: str = PENDING
    published_version: str | None = None
    error: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    ci_status: str | None = None
    ci_run_url: str | None = None

    def to_dict(self) -> dict:
        return {
            "repo_id": self.repo_id,
            "status": self.status,
            "commit_message": self.commit_message,
            "deps_to_update": [d.to_dict() for d in self.deps_to_update],
            "published_version": self.published_version,
            "error": self.error,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "ci_status": self.ci_status,
            "ci_run_url": self.ci_run_url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> CascadeStep:
        return cls(
            repo_id=data["repo_id"],
            commit_message=data.get("commit_message", ""),
            deps_to_update=[DepUpdate.from_dict(d) for d in data.get("deps_to_update", [])],
            status=data.get("status", PENDING),
            published_version=data.get("published_version"),
            error=data.get("error"),
            started_at=data.get("started_at"),
            completed_at=data.get("completed_at"),
            ci_status=data.get("ci_status"),
            ci_run_url=data.get("ci_run_url"),
        )


@dataclass
class CascadeLayer:
    layer_index: int
    mode: str
    steps: list[CascadeStep] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "layer_index": self.layer_index,
            "mode": self.mode,
            "steps": [s.to_dict() for s in self.steps],
        }

    @classmethod
    def from_dict(cls, data: dict) -> CascadeLayer:
        return cls(
            layer_index=data["layer_index"],
            mode=data.get("mode", "sequential"),
            steps=[CascadeStep.from_dict(s) for s in data.get("steps", [])],
        )


@dataclass
class CascadePlan:
    """Ordered, replayable propagation plan for one source repo."""

    source_repo_id: str
    source_commit_message: str
    layers: list[CascadeLayer] = field(default_factory=list)
    total_repos: int = 0
    wait_for_ci: bool = False
    run_tests: bool = False
    commit_prefix: str = DEFAULT_COMMIT_PREFIX

    def steps(self) -> list[CascadeStep]:
        return [s for layer in self.layers for s in layer.steps]

    def find_step(self, repo_id: str) -> CascadeStep | None:
        for step in self.steps():
            if step.repo_id == repo_id:
                return step
        return None

    def summary(self) -> str:
        lines = [
            f"Cascade plan for: {self.source_repo_id}",
            f"  {self.source_commit_message}",
            f"  {self.total_repos} repos in {len(self.layers)} layers"
            f" (wait for CI: {'yes' if self.wait_for_ci else 'no'},"
            f" run tests: {'yes' if self.run_tests else 'no'})",
        ]
        for layer in self.layers:
            lines.append(f"\n  Layer {layer.layer_index} [{layer.mode}]")
            for step in layer.steps:
                lines.append(f"    {step.repo_id:<30} {step.commit_message}")
                for dep in step.deps_to_update:
                    lines.append(f"      {dep.npm_name}: {dep.from_version} -> {dep.to_version}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "source_repo_id": self.source_repo_id,
            "source_commit_message": self.source_commit_message,
            "layers": [layer.to_dict() for layer in self.layers],
            "total_repos": self.total_repos,
            "wait_for_ci": self.wait_for_ci,
            "run_tests": self.run_tests,
            "commit_prefix": self.commit_prefix,
        }


@dataclass
class CascadeExecution:
    """Live state of a running, paused or finished plan."""

    id: str
    plan: CascadePlan
    status: str = RUNNING
    current_layer_index: int = 0
    completed_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    started_at: str = ""
    completed_at: str | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_EXECUTION_STATES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "plan": self.plan.to_dict(),
            "status": self.status,
            "current_layer_index": self.current_layer_index,
            "completed_count": self.completed_count,
            "failed_count": self.failed_count,
            "skipped_count": self.skipped_count,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "error": self.error,
        }
