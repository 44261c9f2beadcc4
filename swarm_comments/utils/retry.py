"""
swarm-comments -- Bounded async retry.

Usage::

    from swarm_comments.utils.retry import retry_async

    comment = await retry_async(store.read_latest_comment, retries=10, delay=1.0)

``retries`` counts the *extra* attempts after the first one, so the callable
runs at most ``retries + 1`` times.  After the budget is spent the last
exception is re-raised unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    retries: int = 3,
    delay: float = 0.25,
) -> T:
    if retries < 0:
        raise ValueError(f"retries must be >= 0, got {retries}")

    attempts_left = retries
    while True:
        try:
            return await fn()
        except Exception as exc:
            if attempts_left <= 0:
                logger.error("Retry budget exhausted: %s", exc)
                raise
            logger.info("Retrying... Attempts left: %d. Error: %s", attempts_left, exc)
            attempts_left -= 1
            await asyncio.sleep(delay)
