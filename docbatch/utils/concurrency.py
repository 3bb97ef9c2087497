"""Concurrency helpers for group-wise batch processing."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


def partition(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into consecutive groups of ``size`` (the last may be smaller).

    Raises:
        ValueError: If size is less than 1
    """
    if size < 1:
        raise ValueError(f"Group size must be at least 1, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


async def run_group(items: Sequence[T], func: Callable[[T], Awaitable[R]]) -> list[R]:
    """Run ``func`` over every item concurrently and wait for all of them.

    Results come back in input order regardless of completion order. ``func``
    is expected to handle its own failures; an exception escaping it
    propagates once every other item has finished.
    """
    results = await asyncio.gather(*(func(item) for item in items), return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)
