"""Workspace module — manifest discovery and repo node construction."""

from repohub_engine.workspace.scanner import discover_manifests, scan_workspace

__all__ = ["discover_manifests", "scan_workspace"]
