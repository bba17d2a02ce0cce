"""Backoff utilities.

`exponential_backoff` is an async generator of attempt numbers. The caller tries its
operation on each yielded attempt and breaks on success; between attempts the generator
sleeps, growing the delay by `multiplier` up to `max_delay`. Used for connection setup
only: receive and delete calls are never retried.
"""
import asyncio
from typing import AsyncIterator


async def exponential_backoff(
    initial_delay: float,
    max_delay: float,
    multiplier: float,
    max_attempts: int,
) -> AsyncIterator[int]:
    delay = initial_delay
    for attempt in range(1, max_attempts + 1):
        yield attempt
        if attempt < max_attempts:
            await asyncio.sleep(delay)
            delay = min(delay * multiplier, max_delay)
