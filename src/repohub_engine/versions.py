"""Resolve the latest published version of a package from the npm registry."""

from __future__ import annotations

import logging

from repohub_engine.process import CommandError, CommandRunner, run_checked, run_command
from repohub_engine.project_config import DEFAULT_REGISTRY

logger = logging.getLogger(__name__)


class NpmVersionResolver:
    """Ask ``npm view`` for ``<package>@latest``."""

    def __init__(self, registry_url: str = DEFAULT_REGISTRY, runner: CommandRunner = run_command):
        self.registry_url = registry_url
        self.runner = runner

    async def latest(self, package: str) -> str | None:
        """Return the latest published version, or None if unavailable."""
        args = ["npm", "view", f"{package}@latest", "version", f"--registry={self.registry_url}"]
        try:
            output = await run_checked(args, ".", runner=self.runner)
        except (CommandError, OSError) as exc:
            logger.debug("Version lookup for %s failed: %s", package, exc)
            return None
        version = output.strip()
        return version or None
