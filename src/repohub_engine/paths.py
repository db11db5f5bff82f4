"""Configuration path resolution.

Resolves canonical paths to repohub data. Uses environment variables when
available, falls back to conventional defaults.

Environment variables:
    REPOHUB_HOME — configuration home (default: ~/.repohub)
    REPOHUB_CONFIG — project config file (default: <home>/project.yaml)
"""

from __future__ import annotations

import os
from pathlib import Path

_DEFAULT_HOME = Path.home() / ".repohub"


def config_home() -> Path:
    """Return the configuration home directory."""
    return Path(os.environ.get("REPOHUB_HOME", str(_DEFAULT_HOME)))


def project_config_path() -> Path:
    """Return the path to project.yaml."""
    env = os.environ.get("REPOHUB_CONFIG")
    if env:
        return Path(env)
    return config_home() / "project.yaml"


def history_dir() -> Path:
    """Return the directory holding persisted cascade runs."""
    return config_home() / "history"
