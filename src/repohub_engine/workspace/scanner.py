"""Discover package.json manifests across a workspace and build repo nodes."""

from __future__ import annotations

import logging
from pathlib import Path

from repohub_engine.graph.model import InternalDependency, RepoNode, derive_dependents
from repohub_engine.manifest import MANIFEST_NAME, dependency_entries, read_manifest

logger = logging.getLogger(__name__)

SKIP_DIRS = {"node_modules", "dist", "build"}


def discover_manifests(root: Path | str, max_depth: int = 3) -> list[Path]:
    """Walk the workspace and find repo-level package.json files.

    Structure: <root>/<domain>/.../<repo>/package.json. A directory holding a
    manifest is treated as a repo; its subdirectories are not searched.

    Returns:
        Sorted list of repo directories.
    """
    root_path = Path(root)
    found: list[Path] = []

    def walk(directory: Path, depth: int) -> None:
        if depth > max_depth:
            return
        for child in sorted(directory.iterdir()):
            if not child.is_dir() or child.name.startswith(".") or child.name in SKIP_DIRS:
                continue
            if (child / MANIFEST_NAME).is_file():
                found.append(child)
            else:
                walk(child, depth + 1)

    if root_path.is_dir():
        walk(root_path, 1)
    return sorted(found)


def _is_internal(name: str, npm_organizations: list[str]) -> bool:
    return any(name.startswith(f"{org}/") for org in npm_organizations)


def scan_workspace(root: Path | str, npm_organizations: list[str]) -> list[RepoNode]:
    """Build repo nodes from every manifest under ``root``.

    Only dependencies in one of ``npm_organizations`` are kept, and only
    when a repo in the workspace publishes that package.
    """
    root_path = Path(root)
    manifests: list[tuple[Path, dict]] = []
    for repo_dir in discover_manifests(root_path):
        try:
            manifest = read_manifest(repo_dir)
        except (OSError, ValueError) as exc:
            logger.warning("Skipping %s: %s", repo_dir, exc)
            continue
        if not manifest.get("name"):
            continue
        manifests.append((repo_dir, manifest))

    repo_by_package = {m["name"]: d.name for d, m in manifests}

    nodes = []
    for repo_dir, manifest in manifests:
        deps = []
        for _, name, spec in dependency_entries(manifest):
            if not _is_internal(name, npm_organizations):
                continue
            repo_id = repo_by_package.get(name, "")
            if repo_id:
                deps.append(InternalDependency(name, repo_id, spec))
        nodes.append(RepoNode(
            id=repo_dir.name,
            npm_package=manifest["name"],
            version=manifest.get("version") or "0.0.0",
            dependencies=deps,
            path=str(repo_dir.relative_to(root_path)),
            absolute_path=str(repo_dir.resolve()),
        ))

    logger.info("Scanned %d repos under %s", len(nodes), root_path)
    return derive_dependents(nodes)
