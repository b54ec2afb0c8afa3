"""Bounded fan-out with per-item failure isolation."""

import asyncio
from collections.abc import Awaitable, Callable, Hashable, Iterable
from typing import TypeVar

_K = TypeVar("_K", bound=Hashable)
_V = TypeVar("_V")


async def gather_bounded(
    keys: Iterable[_K],
    worker: Callable[[_K], Awaitable[_V]],
    limit: int,
) -> tuple[dict[_K, _V], dict[_K, Exception]]:
    """
    Run ``worker(key)`` for every key with at most ``limit`` in flight.

    Results are collected by key regardless of completion order. A failing key
    lands in the second mapping and never cancels its siblings.
    """
    ordered = list(dict.fromkeys(keys))
    semaphore = asyncio.Semaphore(max(int(limit), 1))

    async def _run(key: _K) -> _V:
        async with semaphore:
            return await worker(key)

    outcomes = await asyncio.gather(*(_run(key) for key in ordered), return_exceptions=True)

    results: dict[_K, _V] = {}
    failures: dict[_K, Exception] = {}
    for key, outcome in zip(ordered, outcomes):
        if isinstance(outcome, Exception):
            failures[key] = outcome
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            results[key] = outcome
    return results, failures
