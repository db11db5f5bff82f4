"""Subprocess helpers shared by the git, CI, version and cascade modules."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandError(Exception):
    """A command exited with a non-zero status."""

    def __init__(self, args: list[str], exit_code: int, detail: str = ""):
        self.command = list(args)
        self.exit_code = exit_code
        self.detail = detail
        super().__init__(f"Command failed ({' '.join(args)}): {detail}".rstrip(": "))


# (args, cwd, cancel) -> CommandResult
CommandRunner = Callable[..., Awaitable[CommandResult]]


async def run_command(
    args: list[str],
    cwd: Path | str,
    cancel: asyncio.Event | None = None,
) -> CommandResult:
    """Run a command to completion and capture its output.

    If ``cancel`` is set while the process is running, the process is
    killed and its partial output returned.

    Raises:
        OSError: If the executable cannot be started.
    """
    logger.debug("run %s (cwd=%s)", " ".join(args), cwd)
    proc = await asyncio.create_subprocess_exec(
        *args,
        cwd=str(cwd),
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    communicate = asyncio.ensure_future(proc.communicate())
    if cancel is not None:
        cancelled = asyncio.ensure_future(cancel.wait())
        done, _ = await asyncio.wait(
            {communicate, cancelled}, return_when=asyncio.FIRST_COMPLETED,
        )
        if communicate not in done:
            proc.kill()
        cancelled.cancel()

    stdout, stderr = await communicate
    return CommandResult(
        exit_code=proc.returncode if proc.returncode is not None else 1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


async def run_checked(
    args: list[str],
    cwd: Path | str,
    cancel: asyncio.Event | None = None,
    runner: CommandRunner = run_command,
) -> str:
    """Run a command and return its stdout.

    Raises:
        CommandError: On a non-zero exit, with stderr (or stdout) as detail.
    """
    result = await runner(args, cwd, cancel)
    if not result.ok:
        raise CommandError(args, result.exit_code, (result.stderr or result.stdout).strip())
    return result.stdout
