from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


def compute_backoff(attempt: int, base: float = 1.5, jitter: float = 0.5) -> float:
    """Compute exponential backoff with jitter."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


async def repeat_until_done(
    poll: Callable[[], Awaitable[Optional[T]]],
    interval: float,
    timeout: Optional[float] = None,
) -> T:
    """Call ``poll`` every ``interval`` seconds until it returns a value.

    Exceptions raised by ``poll`` propagate. When ``timeout`` is set and
    elapses first, ``asyncio.TimeoutError`` is raised.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout if timeout is not None else None
    while True:
        result = await poll()
        if result is not None:
            return result
        if deadline is not None and loop.time() + interval >= deadline:
            raise asyncio.TimeoutError(f"Gave up polling after {timeout} seconds")
        await asyncio.sleep(interval)
