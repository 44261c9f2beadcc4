"""
swarm-comments -- Message stream tip tracking.

The tracker owns the locally known tip of the comment feed.  Rules:

- The pointer only moves forward during a session (``reset()`` aside).
- Every slot between the previous tip and a newly observed tip is fetched
  and delivered, so a burst of writes between two polls is never skipped.
- A slot with a bad author signature still moves the pointer (it is
  occupied) but is never delivered.
- While a local write is in flight, poll-driven refreshes are suppressed so
  the pointer cannot move under an unverified write.
"""

from __future__ import annotations

import contextlib
import logging
from typing import Callable, Iterator, Optional

from swarm_comments.bee.store import CommentStorage
from swarm_comments.constants import TIP_RETRY_COUNT, TIP_RETRY_DELAY
from swarm_comments.engine.context import SessionContext
from swarm_comments.engine.emitter import CommentEvent
from swarm_comments.messages.index_codec import NO_INDEX
from swarm_comments.messages.schemas import Message
from swarm_comments.messages.signing import validate_user_signature
from swarm_comments.utils.retry import retry_async

logger = logging.getLogger(__name__)


class SequenceTracker:
    """Owner of the comment feed pointer."""

    def __init__(
        self,
        store: CommentStorage,
        context: SessionContext,
        validator: Callable[[Message], bool] = validate_user_signature,
        retry_count: int = TIP_RETRY_COUNT,
        retry_delay: float = TIP_RETRY_DELAY,
    ) -> None:
        self._store = store
        self._ctx = context
        self._validate = validator
        self._retry_count = retry_count
        self._retry_delay = retry_delay
        self._pointer: int = NO_INDEX
        self._initialized = False
        self._writes_in_flight = 0

    @property
    def pointer(self) -> int:
        return self._pointer

    @property
    def write_in_flight(self) -> bool:
        return self._writes_in_flight > 0

    def next_write_index(self) -> int:
        return 0 if self._pointer == NO_INDEX else self._pointer + 1

    def _set_pointer(self, index: int) -> None:
        self._pointer = index
        self._ctx.metrics.set_pointer("comments", index)

    # -- lifecycle ---------------------------------------------------------- #

    async def init(self, latest_index: Optional[int] = None) -> None:
        """Seed from an optional checkpoint, then read the tip once.

        The tip read is retried; once the budget is spent the error is
        raised.  When a checkpoint was given and the tip is past it, the
        range in between was missed while offline and is backfilled.
        """
        if latest_index is not None:
            self._set_pointer(latest_index)
            logger.debug("Comment pointer seeded from checkpoint: %d", latest_index)

        tip = await retry_async(
            self._store.read_latest_comment,
            retries=self._retry_count,
            delay=self._retry_delay,
        )
        self._initialized = True

        if tip is None or tip.index <= self._pointer:
            logger.debug("Comment tip after init: %d", self._pointer)
            return

        prior = self._pointer
        self._set_pointer(tip.index)
        if latest_index is not None:
            await self.backfill_from(prior, tip.index)

    def reset(self) -> None:
        self._set_pointer(NO_INDEX)
        self._initialized = False
        self._writes_in_flight = 0

    # -- polling ------------------------------------------------------------ #

    async def refresh_tip(self) -> Optional[Message]:
        """Read the tip and deliver anything new.

        Returns the new tip message, or None when nothing advanced, a write is
        in flight, or the read failed (failures are reported, not raised).
        """
        if self.write_in_flight:
            return None

        try:
            tip = await self._store.read_latest_comment()
        except Exception as exc:
            self._ctx.reporter.report(exc, "SequenceTracker.refresh_tip")
            return None

        # a write may have started while the read was in flight
        if self.write_in_flight or tip is None or tip.index <= self._pointer:
            return None

        prior = self._pointer
        self._set_pointer(tip.index)

        if self._initialized and tip.index - 1 > prior:
            await self.backfill_from(prior, tip.index - 1)
        self._initialized = True

        self._deliver(tip, source="poll")
        return tip

    async def backfill_from(self, prior_tip: int, new_tip: int) -> int:
        """Deliver every valid message in ``(prior_tip, new_tip]``.

        Returns the number delivered.  A failed fetch is reported; the pointer
        is not rolled back.
        """
        start = max(prior_tip + 1, 0)
        if new_tip < start:
            return 0

        logger.info("Backfilling comments %d..%d", start, new_tip)
        try:
            messages = await self._store.read_comments_in_range(start, new_tip)
        except Exception as exc:
            self._ctx.reporter.report(exc, "SequenceTracker.backfill_from")
            return 0

        delivered = 0
        for message in messages:
            if start <= message.index <= new_tip and self._deliver(message, source="backfill"):
                delivered += 1
        return delivered

    def _deliver(self, message: Message, source: str) -> bool:
        if not self._validate(message):
            logger.warning("Invalid signature at comments[%d], dropping", message.index)
            self._ctx.metrics.record_rejection()
            return False
        self._ctx.emitter.emit(CommentEvent.MESSAGE_RECEIVED, message)
        self._ctx.metrics.record_received(source)
        return True

    # -- writes ------------------------------------------------------------- #

    @contextlib.contextmanager
    def write_guard(self) -> Iterator[None]:
        """Suppress poll refreshes until every local write has finished."""
        self._writes_in_flight += 1
        try:
            yield
        finally:
            self._writes_in_flight = max(self._writes_in_flight - 1, 0)

    def confirm_write(self, index: int) -> None:
        """Advance to a verified own write."""
        if index > self._pointer:
            self._set_pointer(index)
