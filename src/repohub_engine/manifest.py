"""Read and rewrite package.json manifests."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Iterable, Protocol

MANIFEST_NAME = "package.json"
DEPENDENCY_SECTIONS = ("dependencies", "devDependencies", "peerDependencies")


class VersionUpdate(Protocol):
    npm_name: str
    to_version: str


def read_manifest(repo_path: Path | str) -> dict:
    """Load package.json from a repo directory.

    Raises:
        FileNotFoundError: If the manifest does not exist.
        ValueError: If it is not a JSON object.
    """
    manifest_path = Path(repo_path) / MANIFEST_NAME
    with open(manifest_path) as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{manifest_path} is not a JSON object")
    return data


def write_manifest(repo_path: Path | str, data: dict) -> None:
    """Write package.json with 2-space indentation and a trailing newline."""
    manifest_path = Path(repo_path) / MANIFEST_NAME
    with open(manifest_path, "w") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")


def dependency_entries(manifest: dict) -> Iterable[tuple[str, str, str]]:
    """Yield (section, name, version_spec) for every dependency entry."""
    for section in DEPENDENCY_SECTIONS:
        deps = manifest.get(section) or {}
        if not isinstance(deps, dict):
            continue
        for name, spec in deps.items():
            yield section, name, str(spec)


def apply_version_updates(manifest: dict, updates: Iterable[VersionUpdate]) -> int:
    """Set each updated dependency's constraint in every section that lists it.

    Returns:
        Number of entries changed.
    """
    changed = 0
    for update in updates:
        for section in DEPENDENCY_SECTIONS:
            deps = manifest.get(section)
            if isinstance(deps, dict) and update.npm_name in deps:
                if deps[update.npm_name] != update.to_version:
                    changed += 1
                deps[update.npm_name] = update.to_version
    return changed


def _rewrite(repo_path: Path | str, updates: list[VersionUpdate]) -> int:
    manifest = read_manifest(repo_path)
    changed = apply_version_updates(manifest, updates)
    write_manifest(repo_path, manifest)
    return changed


async def update_manifest_dependencies(
    repo_path: Path | str,
    updates: list[VersionUpdate],
) -> int:
    """Rewrite a repo's manifest with the given dependency versions."""
    if not updates:
        return 0
    return await asyncio.to_thread(_rewrite, repo_path, list(updates))
