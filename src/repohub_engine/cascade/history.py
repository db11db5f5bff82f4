"""Persist finished cascade runs as one JSON document per execution."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from repohub_engine.cascade.models import CascadeExecution, CascadeLayer
from repohub_engine.paths import history_dir

logger = logging.getLogger(__name__)

HISTORY_MARKER = "_cascade_"


@dataclass
class CascadeHistoryEntry:
    id: str
    source_repo_id: str
    status: str
    total_repos: int = 0
    completed_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    started_at: str = ""
    completed_at: str | None = None
    layers: list[CascadeLayer] = field(default_factory=list)

    @classmethod
    def from_execution(cls, execution: CascadeExecution) -> CascadeHistoryEntry:
        return cls(
            id=execution.id,
            source_repo_id=execution.plan.source_repo_id,
            status=execution.status,
            total_repos=execution.plan.total_repos,
            completed_count=execution.completed_count,
            failed_count=execution.failed_count,
            skipped_count=execution.skipped_count,
            started_at=execution.started_at,
            completed_at=execution.completed_at,
            layers=[CascadeLayer.from_dict(layer.to_dict()) for layer in execution.plan.layers],
        )

    @classmethod
    def from_dict(cls, data: dict) -> CascadeHistoryEntry:
        return cls(
            id=data["id"],
            source_repo_id=data.get("source_repo_id", ""),
            status=data.get("status", ""),
            total_repos=data.get("total_repos", 0),
            completed_count=data.get("completed_count", 0),
            failed_count=data.get("failed_count", 0),
            skipped_count=data.get("skipped_count", 0),
            started_at=data.get("started_at", ""),
            completed_at=data.get("completed_at"),
            layers=[CascadeLayer.from_dict(layer) for layer in data.get("layers", [])],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source_repo_id": self.source_repo_id,
            "status": self.status,
            "total_repos": self.total_repos,
            "completed_count": self.completed_count,
            "failed_count": self.failed_count,
            "skipped_count": self.skipped_count,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "layers": [layer.to_dict() for layer in self.layers],
        }

    @property
    def filename(self) -> str:
        stamp = self.started_at.replace(":", "-").replace(".", "-")
        return f"{stamp}{HISTORY_MARKER}{self.id}.json"


class HistoryStore:
    """Directory of history documents, newest first when listed."""

    def __init__(self, directory: Path | str | None = None):
        self.directory = Path(directory) if directory else history_dir()

    def _write(self, entry: CascadeHistoryEntry) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / entry.filename
        with open(path, "w") as f:
            json.dump(entry.to_dict(), f, indent=2)
            f.write("\n")
        return path

    def _read(self, limit: int, offset: int) -> list[CascadeHistoryEntry]:
        if not self.directory.is_dir():
            return []

        files = sorted(
            (p for p in self.directory.glob("*.json") if HISTORY_MARKER in p.name),
            reverse=True,
        )
        # Unreadable files do not count towards offset or limit.
        entries = []
        skipped = 0
        for path in files:
            if len(entries) >= limit:
                break
            entry = self._load(path)
            if entry is None:
                continue
            if skipped < offset:
                skipped += 1
                continue
            entries.append(entry)
        return entries

    @staticmethod
    def _load(path: Path) -> CascadeHistoryEntry | None:
        try:
            with open(path) as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("not a JSON object")
            return CascadeHistoryEntry.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Skipping unreadable history file %s: %s", path.name, exc)
            return None

    async def save(self, entry: CascadeHistoryEntry) -> Path:
        path = await asyncio.to_thread(self._write, entry)
        logger.info("Saved cascade %s to %s", entry.id, path)
        return path

    async def list_entries(self, limit: int = 20, offset: int = 0) -> list[CascadeHistoryEntry]:
        return await asyncio.to_thread(self._read, max(0, limit), max(0, offset))
