"""Helpers shared by CLI command modules."""

import argparse
import os
from pathlib import Path

from repohub_engine.graph.model import RepoNode
from repohub_engine.project_config import ProjectConfig, load_project_config
from repohub_engine.workspace.scanner import scan_workspace


def load_config(args: argparse.Namespace) -> ProjectConfig:
    return load_project_config(getattr(args, "config", None))


def resolve_root(args: argparse.Namespace, config: ProjectConfig) -> Path | None:
    """Resolve the workspace root from args, environment, then config."""
    raw = getattr(args, "root", None) or os.environ.get("REPOHUB_ROOT") or config.root_folder
    if not raw:
        return None
    return Path(raw).expanduser().resolve()


def load_nodes(args: argparse.Namespace, config: ProjectConfig) -> list[RepoNode] | None:
    root = resolve_root(args, config)
    if root is None or not root.is_dir():
        print("ERROR: No workspace root. Pass --root or set root_folder in project.yaml")
        return None
    return scan_workspace(root, config.npm_organizations)
