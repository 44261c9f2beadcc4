"""
swarm-comments -- Poll loop.

One background task.  Each tick fans out the message-tip refresh and the
reaction refresh, waits for both to settle (either may fail on its own), then
sleeps ``interval`` seconds before the next tick.

Stopping is cooperative: ``stop()`` sets a flag and wakes the sleeper; a tick
already running finishes first.  ``tick()`` is public so tests can step the
loop by hand.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from swarm_comments.constants import DEFAULT_POLL_INTERVAL, MINIMUM_POLL_INTERVAL
from swarm_comments.engine.context import SessionContext
from swarm_comments.engine.reactions import ReactionAggregator
from swarm_comments.engine.sequence import SequenceTracker

logger = logging.getLogger(__name__)


def clamp_interval(interval: Optional[float]) -> float:
    if interval is None:
        return DEFAULT_POLL_INTERVAL
    return max(interval, MINIMUM_POLL_INTERVAL)


class PollLoop:
    def __init__(
        self,
        tracker: SequenceTracker,
        reactions: ReactionAggregator,
        context: SessionContext,
        interval: Optional[float] = None,
    ) -> None:
        self._tracker = tracker
        self._reactions = reactions
        self._ctx = context
        self._interval = clamp_interval(interval)
        self._stop_requested = False
        self._wake = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> None:
        results = await asyncio.gather(
            self._tracker.refresh_tip(),
            self._reactions.refresh(self._reactions.pointer + 1),
            return_exceptions=True,
        )
        for name, result in zip(("refresh_tip", "refresh_reactions"), results):
            if isinstance(result, Exception):
                self._ctx.reporter.report(result, f"PollLoop.{name}")
        self._ctx.metrics.record_tick()

    def start(self) -> None:
        if self.is_running:
            logger.warning("PollLoop already running")
            return
        self._stop_requested = False
        self._wake = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="swarm-comment-poll")
        logger.info("PollLoop started (interval=%.2fs)", self._interval)

    async def stop(self) -> None:
        """Request a stop and wait for the in-flight tick to finish."""
        self._stop_requested = True
        self._wake.set()
        task, self._task = self._task, None
        if task is not None:
            await task
        logger.info("PollLoop stopped")

    async def _run(self) -> None:
        while not self._stop_requested:
            await self.tick()
            if self._stop_requested:
                break
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
