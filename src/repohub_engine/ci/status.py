"""CI run status lookup through the GitHub CLI."""

from __future__ import annotations

import json
from dataclasses import dataclass

from repohub_engine.process import CommandError, CommandRunner, run_checked, run_command

CI_PENDING = "pending"
CI_RUNNING = "running"
CI_SUCCESS = "success"
CI_FAILURE = "failure"
CI_SKIPPED = "skipped"


class CiUnavailableError(Exception):
    """The CI status could not be queried (CLI missing, auth, bad output)."""


@dataclass
class CiRun:
    status: str = CI_PENDING
    url: str | None = None


def parse_run_list(output: str) -> CiRun:
    """Interpret ``gh run list --json status,conclusion,url`` output.

    Raises:
        CiUnavailableError: If the output is not the expected JSON list.
    """
    try:
        runs = json.loads(output or "[]")
    except json.JSONDecodeError as exc:
        raise CiUnavailableError(f"Unparsable gh output: {exc}") from exc
    if not isinstance(runs, list):
        raise CiUnavailableError("Unexpected gh output")
    if not runs:
        return CiRun(CI_PENDING)

    run = runs[0]
    url = run.get("url")
    status = run.get("status")
    if status == "completed":
        return CiRun(CI_SUCCESS if run.get("conclusion") == "success" else CI_FAILURE, url)
    if status in ("in_progress", "queued"):
        return CiRun(CI_RUNNING, url)
    return CiRun(CI_PENDING, url)


class GhCiClient:
    """Query the most recent workflow run of a repository."""

    def __init__(self, runner: CommandRunner = run_command):
        self.runner = runner

    async def latest_run(self, slug: str) -> CiRun:
        args = [
            "gh", "run", "list",
            "--repo", slug,
            "--limit", "1",
            "--json", "status,conclusion,url",
        ]
        try:
            output = await run_checked(args, ".", runner=self.runner)
        except (CommandError, OSError) as exc:
            raise CiUnavailableError(f"gh CLI unavailable: {exc}") from exc
        return parse_run_list(output)
