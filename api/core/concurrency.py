"""
Bounded fan-out for async store calls.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def run_bounded(
    items: Sequence[T],
    fn: Callable[[T], Awaitable[R]],
    *,
    limit: int,
) -> list[R]:
    """
    Await `fn(item)` for every item with at most `limit` calls in flight.

    Results come back in input order. After the first exception no new item
    is started, but calls already in flight run to completion so their
    effects are known to the caller; then the first exception is re-raised.
    """
    if limit <= 0:
        raise ValueError("limit must be > 0")
    if not items:
        return []

    results: list[Any] = [None] * len(items)
    next_index = 0
    failure: BaseException | None = None

    async def worker() -> None:
        nonlocal next_index, failure
        while failure is None and next_index < len(items):
            index = next_index
            next_index += 1
            try:
                results[index] = await fn(items[index])
            except Exception as exc:
                if failure is None:
                    failure = exc
                return

    workers = [asyncio.create_task(worker()) for _ in range(min(limit, len(items)))]
    try:
        await asyncio.gather(*workers)
    except BaseException:
        # Cancellation of the caller still tears the pool down.
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        raise
    if failure is not None:
        raise failure
    return results
