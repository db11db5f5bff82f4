"""Git operations used by the cascade engine: stage, commit, sync, remotes."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from repohub_engine.process import CommandError, CommandRunner, run_checked, run_command

logger = logging.getLogger(__name__)

_GITHUB_SLUG = re.compile(r"github\.com[/:](.+?)(?:\.git)?/?$")


async def _run_git(
    args: list[str],
    cwd: Path | str,
    runner: CommandRunner = run_command,
) -> str:
    """Run a git command and return stdout, raising CommandError on failure."""
    return await run_checked(["git"] + args, cwd, runner=runner)


async def stage_all(repo_path: Path | str, runner: CommandRunner = run_command) -> None:
    await _run_git(["add", "-A"], repo_path, runner)


async def has_changes(repo_path: Path | str, runner: CommandRunner = run_command) -> bool:
    """True if ``git status --porcelain`` reports anything."""
    output = await _run_git(["status", "--porcelain"], repo_path, runner)
    return bool(output.strip())


async def commit(
    repo_path: Path | str,
    message: str,
    runner: CommandRunner = run_command,
) -> None:
    await _run_git(["commit", "-m", message], repo_path, runner)


async def pull_rebase(repo_path: Path | str, runner: CommandRunner = run_command) -> bool:
    """Integrate remote changes before pushing.

    Failures are tolerated: local-only branches commonly have no upstream.

    Returns:
        True if the pull succeeded.
    """
    try:
        await _run_git(["pull", "--rebase"], repo_path, runner)
    except CommandError as exc:
        logger.debug("pull --rebase skipped in %s: %s", repo_path, exc)
        return False
    return True


async def push(repo_path: Path | str, runner: CommandRunner = run_command) -> None:
    await _run_git(["push"], repo_path, runner)


async def remote_url(
    repo_path: Path | str,
    runner: CommandRunner = run_command,
) -> str | None:
    """Get the origin remote URL for a repo."""
    try:
        output = await _run_git(["remote", "get-url", "origin"], repo_path, runner)
    except (CommandError, OSError):
        return None
    return output.strip() or None


def github_slug(url: str) -> str | None:
    """Parse ``org/repo`` from an https or ssh GitHub remote URL."""
    match = _GITHUB_SLUG.search(url.strip())
    return match.group(1) if match else None


async def resolve_slug(
    repo_path: Path | str,
    runner: CommandRunner = run_command,
) -> str | None:
    url = await remote_url(repo_path, runner)
    if not url:
        return None
    return github_slug(url)
