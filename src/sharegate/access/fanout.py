"""Bounded fan-out with order-preserving fan-in."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

T = TypeVar("T")


async def gather_bounded(
    factories: Sequence[Callable[[], Awaitable[T]]],
    limit: int,
) -> list[T]:
    """Run *factories* with at most *limit* in flight; results in submission order.

    If any call raises, the remaining tasks are cancelled and awaited
    before the original exception propagates unchanged.
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")
    if not factories:
        return []
    if len(factories) == 1:
        return [await factories[0]()]

    semaphore = asyncio.Semaphore(limit)

    async def _run(factory: Callable[[], Awaitable[T]]) -> T:
        async with semaphore:
            return await factory()

    tasks = [asyncio.ensure_future(_run(f)) for f in factories]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
