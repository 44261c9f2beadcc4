"""Backward pagination through the comment feed ("load more")."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from swarm_comments.bee.store import CommentStorage
from swarm_comments.constants import COMMENTS_TO_READ
from swarm_comments.engine.context import SessionContext
from swarm_comments.engine.emitter import CommentEvent
from swarm_comments.messages.index_codec import NO_INDEX
from swarm_comments.messages.schemas import Message
from swarm_comments.messages.signing import validate_user_signature

logger = logging.getLogger(__name__)


class HistoryPaginator:
    """Walks the comment feed backwards in fixed-size pages.

    The cursor is the oldest index already delivered.  A page covers
    ``[max(cursor - page_size, 0), cursor - 1]`` and the cursor then moves to
    the page start, so the walk stops at index 0 and never asks for a
    negative slot.
    """

    def __init__(
        self,
        store: CommentStorage,
        context: SessionContext,
        page_size: int = COMMENTS_TO_READ,
        validator: Callable[[Message], bool] = validate_user_signature,
    ) -> None:
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        self._store = store
        self._ctx = context
        self._page_size = page_size
        self._validate = validator
        self._cursor: int = NO_INDEX

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def page_size(self) -> int:
        return self._page_size

    def _set_cursor(self, index: int) -> None:
        self._cursor = index
        self._ctx.metrics.set_pointer("history", index)

    async def init(self, first_index: Optional[int] = None, emit_tip: bool = True) -> None:
        """Position the cursor at the tip (or at *first_index*).

        Errors are reported, not raised: a session without history can still
        send and poll.
        """
        if first_index is not None:
            self._set_cursor(first_index)
            logger.debug("Skipping history fetching, start index: %d", first_index)
            return

        try:
            tip = await self._store.read_latest_comment()
        except Exception as exc:
            self._ctx.reporter.report(exc, "HistoryPaginator.init")
            return

        if tip is None:
            logger.debug("No latest comment found for message state initialization")
            return

        if emit_tip:
            self._deliver(tip)
        self._set_cursor(tip.index)

    def clamp_cursor(self, index: int) -> None:
        """Lower the cursor to *index* if it is above it."""
        if self._cursor > index:
            self._set_cursor(index)

    def has_previous(self) -> bool:
        return self._cursor > 0

    async def load_previous_page(self) -> list[Message]:
        """Fetch and deliver the page just below the cursor.

        Entries with bad signatures are dropped; the rest of the page is
        still delivered.  Returns the delivered messages.
        """
        if self._cursor <= 0:
            return []

        start = max(self._cursor - self._page_size, 0)
        end = self._cursor - 1
        logger.debug("Fetching previous messages from: %d to: %d", start, end)

        messages = await self._store.read_comments_in_range(start, end)

        delivered = [m for m in messages if self._deliver(m)]
        self._set_cursor(start)
        return delivered

    def reset(self) -> None:
        self._set_cursor(NO_INDEX)

    def _deliver(self, message: Message) -> bool:
        if not self._validate(message):
            logger.warning("Invalid signature detected at comments[%d]", message.index)
            self._ctx.metrics.record_rejection()
            return False
        self._ctx.emitter.emit(CommentEvent.MESSAGE_RECEIVED, message)
        self._ctx.metrics.record_received("history")
        return True
