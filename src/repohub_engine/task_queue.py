"""Bounded-concurrency task execution.

Runs an async worker over a list of items with at most N in flight. Workers
pull from a shared cursor, so a slow item never blocks the rest of a fixed
partition. One item's exception is recorded on that item only.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class TaskResult(Generic[T, R]):
    item: T
    result: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TaskQueue:
    """Run ``worker(item)`` for every item with bounded concurrency."""

    def __init__(self, concurrency: int):
        self.concurrency = max(1, int(concurrency))

    async def run(
        self,
        items: list[T],
        worker: Callable[[T], Awaitable[R]],
    ) -> list[TaskResult[T, R]]:
        """Process all items; results are returned in input order."""
        results: list[Any] = [None] * len(items)
        cursor = 0

        async def run_next() -> None:
            nonlocal cursor
            while cursor < len(items):
                index = cursor
                cursor += 1
                item = items[index]
                try:
                    results[index] = TaskResult(item, result=await worker(item))
                except Exception as exc:
                    results[index] = TaskResult(item, error=exc)

        workers = [run_next() for _ in range(min(self.concurrency, len(items)))]
        await asyncio.gather(*workers)
        return results
