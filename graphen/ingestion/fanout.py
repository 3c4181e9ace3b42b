"""
Bounded fan-out shared by the extraction and embedding phases.

Semantics:
    - At most ``concurrency`` workers run at once (asyncio.Semaphore)
    - Results come back in input order regardless of completion order
    - After the first failure, or once ``cancel_event`` is set, workers that
      have not started are skipped; workers already running settle normally
    - The earliest failure in input order is re-raised
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


class FanOutCancelled(Exception):
    """Raised when cancel_event stopped the fan-out before every item ran."""

    def __init__(self, completed: int, total: int) -> None:
        super().__init__(f"Cancelled after {completed}/{total} items")
        self.completed = completed
        self.total = total


class _Skipped(Exception):
    pass


async def bounded_map(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    *,
    concurrency: int,
    cancel_event: asyncio.Event | None = None,
) -> list[R]:
    """
    Apply an async worker to every item with bounded concurrency.

    Raises:
        FanOutCancelled: If cancellation skipped any item and nothing failed
        Exception: The first worker failure in input order
    """
    if not items:
        return []

    semaphore = asyncio.Semaphore(max(1, concurrency))
    failed = asyncio.Event()

    async def run_one(item: T) -> R:
        async with semaphore:
            if failed.is_set() or (cancel_event is not None and cancel_event.is_set()):
                raise _Skipped()
            try:
                return await worker(item)
            except Exception:
                failed.set()
                raise

    outcomes = await asyncio.gather(*(run_one(item) for item in items), return_exceptions=True)

    skipped = 0
    for outcome in outcomes:
        if isinstance(outcome, _Skipped):
            skipped += 1
        elif isinstance(outcome, BaseException):
            raise outcome

    if skipped:
        raise FanOutCancelled(completed=len(items) - skipped, total=len(items))

    return outcomes  # type: ignore[return-value]
