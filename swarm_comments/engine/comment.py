"""
swarm-comments -- Comment session orchestrator.

Owns the lifecycle of one session on one topic:

1. ``start()``   -- tip discovery (with optional checkpoint + backfill),
                    history cursor and reaction state, concurrently; then
                    the poll loop.
2. ``send_message()`` -- sign, place, write, read back.
3. ``fetch_previous_messages()`` -- one page of history.
4. ``stop()``    -- stop polling, forget all pointers, drop handlers.

Everything the caller sees goes through the emitter (see
:class:`~swarm_comments.engine.emitter.CommentEvent`).

Usage::

    comment = SwarmComment(get_settings())
    comment.get_emitter().on(CommentEvent.MESSAGE_RECEIVED, print)
    await comment.start()
    await comment.send_message("hello")
    await comment.stop()
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Iterable, Optional

from swarm_comments.bee.keys import topic_hex
from swarm_comments.bee.store import CommentStorage, CommentStore
from swarm_comments.config.settings import CommentSettings, PreloadCheckpoint
from swarm_comments.constants import TIP_RETRY_COUNT, TIP_RETRY_DELAY
from swarm_comments.engine.context import SessionContext
from swarm_comments.engine.emitter import CommentEvent, EventEmitter
from swarm_comments.engine.history import HistoryPaginator
from swarm_comments.engine.poller import PollLoop
from swarm_comments.engine.reactions import ReactionAggregator
from swarm_comments.engine.sequence import SequenceTracker
from swarm_comments.engine.verifier import CollisionError, WriteVerifier
from swarm_comments.messages.schemas import Message, MessageType, generate_message_id, order_messages
from swarm_comments.messages.signing import address_from_key, sign_message

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class SwarmComment:
    """One comment session: two shared feeds, one author identity."""

    def __init__(
        self,
        settings: CommentSettings,
        store: Optional[CommentStorage] = None,
        context: Optional[SessionContext] = None,
        tip_retry_count: int = TIP_RETRY_COUNT,
        tip_retry_delay: float = TIP_RETRY_DELAY,
    ) -> None:
        if not settings.private_key:
            raise ValueError("private_key is required")
        if not settings.topic:
            raise ValueError("topic is required")

        self._settings = settings
        self._ctx = context or SessionContext()
        self._private_key = settings.private_key
        self._nickname = settings.nickname
        self._address = address_from_key(settings.private_key)
        self._topic = topic_hex(settings.topic)

        self._store: CommentStorage = store or CommentStore(
            settings.bee_url,
            settings.topic,
            stamp=settings.stamp,
            timeout_seconds=settings.request_timeout_seconds,
            max_concurrent_reads=settings.max_concurrent_reads,
        )
        self._verifier = WriteVerifier(self._store)
        self._tracker = SequenceTracker(
            self._store,
            self._ctx,
            retry_count=tip_retry_count,
            retry_delay=tip_retry_delay,
        )
        self._reactions = ReactionAggregator(self._store, self._ctx)
        self._history = HistoryPaginator(self._store, self._ctx, page_size=settings.history_page_size)
        self._poller = PollLoop(self._tracker, self._reactions, self._ctx, settings.poll_interval)

    # -- accessors ---------------------------------------------------------- #

    @property
    def address(self) -> str:
        return self._address

    @property
    def topic(self) -> str:
        return self._topic

    @property
    def message_index(self) -> int:
        return self._tracker.pointer

    @property
    def reaction_index(self) -> int:
        return self._reactions.pointer

    @property
    def poller(self) -> PollLoop:
        return self._poller

    def get_emitter(self) -> EventEmitter:
        return self._ctx.emitter

    def get_checkpoint(self) -> PreloadCheckpoint:
        """Current pointers, suitable for seeding the next session."""
        return PreloadCheckpoint(
            first_index=self._history.cursor if self._history.cursor >= 0 else None,
            latest_index=self._tracker.pointer,
            reaction_index=self._reactions.pointer,
        )

    def has_previous_messages(self) -> bool:
        return self._history.has_previous()

    @staticmethod
    def order_messages(messages: list[Message]) -> list[Message]:
        return order_messages(messages)

    # -- lifecycle ---------------------------------------------------------- #

    async def start(self, checkpoint: Optional[PreloadCheckpoint] = None) -> bool:
        """Initialise the session and start polling.

        Returns False when the comment tip could not be read (a
        ``CRITICAL_ERROR`` has been emitted); polling still starts and keeps
        trying to find the tip.
        """
        ok = await self._init(checkpoint or self._settings.preload or PreloadCheckpoint())
        self._poller.start()
        return ok

    async def stop(self) -> None:
        await self._poller.stop()
        self._tracker.reset()
        self._reactions.reset()
        self._history.reset()
        self._ctx.emitter.clean_all()
        await self._store.close()
        logger.info("Comment session stopped [topic=%s]", self._topic)

    async def _init(self, checkpoint: PreloadCheckpoint) -> bool:
        emitter = self._ctx.emitter
        emitter.emit(CommentEvent.LOADING_INIT, True)

        tracker_result, history_result, reaction_result = await asyncio.gather(
            self._tracker.init(checkpoint.latest_index),
            self._history.init(checkpoint.first_index, emit_tip=checkpoint.latest_index is None),
            self._reactions.init(checkpoint.reaction_index),
            return_exceptions=True,
        )

        for context, result in (
            ("SwarmComment.init.history", history_result),
            ("SwarmComment.init.reactions", reaction_result),
        ):
            if isinstance(result, Exception):
                self._ctx.reporter.report(result, context)

        if isinstance(tracker_result, Exception):
            self._ctx.reporter.report(tracker_result, "SwarmComment.init")
            emitter.emit(CommentEvent.CRITICAL_ERROR, tracker_result)
            return False

        # everything above the checkpoint came in through backfill
        if checkpoint.latest_index is not None and checkpoint.first_index is None:
            self._history.clamp_cursor(checkpoint.latest_index + 1)

        emitter.emit(CommentEvent.LOADING_INIT, False)
        logger.info(
            "Comment session started [topic=%s, latest=%d, reactions=%d]",
            self._topic,
            self._tracker.pointer,
            self._reactions.pointer,
        )
        return True

    # -- sending ------------------------------------------------------------ #

    def _build_message(
        self,
        body: str,
        message_type: MessageType,
        target_message_id: Optional[str],
        message_id: Optional[str],
    ) -> Message:
        timestamp = now_ms()
        return Message(
            id=message_id or generate_message_id(),
            username=self._nickname,
            address=self._address,
            topic=self._topic,
            signature=sign_message(self._private_key, self._nickname, self._address, timestamp, body),
            timestamp=timestamp,
            type=message_type,
            target_message_id=target_message_id,
            message=body,
        )

    async def send_message(
        self,
        message: str,
        type: MessageType = MessageType.TEXT,
        target_message_id: Optional[str] = None,
        id: Optional[str] = None,
        prev_state: Optional[Iterable[Message]] = None,
    ) -> Optional[Message]:
        """Write one comment, thread reply or reaction.

        Returns the placed message on success, None on failure.  Failures
        (including collisions) are emitted as ``MESSAGE_REQUEST_ERROR`` and
        reported; nothing is retried automatically.
        """
        msg = self._build_message(message, MessageType(type), target_message_id, id)
        self._ctx.emitter.emit(CommentEvent.MESSAGE_REQUEST_INITIATED, msg)
        stream = "reactions" if msg.type is MessageType.REACTION else "comments"

        try:
            if msg.type is MessageType.REACTION:
                # resync first to narrow the collision window
                await self._reactions.refresh()
                snapshot, index = self._reactions.prepare_write(prev_state, msg)
                msg = msg.model_copy(update={"index": index})
                await self._store.write_reactions(snapshot.reactions, index)
                await self._verifier.verify_reactions(index, snapshot, msg)
                self._reactions.confirm_write(snapshot)
            else:
                await self._tracker.refresh_tip()
                with self._tracker.write_guard():
                    index = self._tracker.next_write_index()
                    msg = msg.model_copy(update={"index": index})
                    await self._store.write_comment(msg, index)
                    await self._verifier.verify_comment(index, msg)
                    self._tracker.confirm_write(index)
        except CollisionError as exc:
            self._ctx.metrics.record_write(stream, "collision")
            self._ctx.emitter.emit(CommentEvent.MESSAGE_REQUEST_ERROR, msg)
            self._ctx.reporter.report(exc, "SwarmComment.send_message")
            return None
        except Exception as exc:
            self._ctx.metrics.record_write(stream, "failed")
            self._ctx.emitter.emit(CommentEvent.MESSAGE_REQUEST_ERROR, msg)
            self._ctx.reporter.report(exc, "SwarmComment.send_message")
            return None

        self._ctx.metrics.record_write(stream, "ok")
        self._ctx.emitter.emit(CommentEvent.MESSAGE_REQUEST_UPLOADED, msg)
        return msg

    async def retry_send_message(self, message: Message) -> Optional[Message]:
        """Resend a failed message with its original body, type, target and id.

        The timestamp and signature are fresh and the tip is resynced before
        writing, so the message may land at a different index.
        """
        return await self.send_message(
            message.message,
            message.type,
            message.target_message_id,
            message.id,
        )

    # -- history ------------------------------------------------------------ #

    async def fetch_previous_messages(self) -> list[Message]:
        self._ctx.emitter.emit(CommentEvent.LOADING_PREVIOUS_MESSAGES, True)
        try:
            return await self._history.load_previous_page()
        finally:
            self._ctx.emitter.emit(CommentEvent.LOADING_PREVIOUS_MESSAGES, False)
