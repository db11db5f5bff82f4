"""Git module — staging, committing and pushing cascade updates."""

from repohub_engine.git.ops import (
    commit,
    github_slug,
    has_changes,
    pull_rebase,
    push,
    remote_url,
    resolve_slug,
    stage_all,
)

__all__ = [
    "commit",
    "github_slug",
    "has_changes",
    "pull_rebase",
    "push",
    "remote_url",
    "resolve_slug",
    "stage_all",
]
