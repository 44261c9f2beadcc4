"""
swarm-comments -- Session event emitter.

Broadcasts lifecycle and data events to caller-registered handlers.  The set
of events is closed (:class:`CommentEvent`); emitting or subscribing to
anything else is a programming error.

Handlers are called synchronously, in registration order, from the event
loop.  A handler that raises is logged and skipped; the remaining handlers
still run.  Coroutine handlers are scheduled as tasks and not awaited, so a
slow consumer never blocks the engine.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]


class CommentEvent(str, enum.Enum):
    LOADING_INIT = "loadingInit"
    LOADING_PREVIOUS_MESSAGES = "loadingPreviousMessages"
    MESSAGE_RECEIVED = "messageReceived"
    REACTIONS_RECEIVED = "reactionsReceived"
    MESSAGE_REQUEST_INITIATED = "messageRequestInitiated"
    MESSAGE_REQUEST_UPLOADED = "messageRequestUploaded"
    MESSAGE_REQUEST_ERROR = "messageRequestError"
    CRITICAL_ERROR = "criticalError"


class EventEmitter:
    """Typed publish/subscribe keyed by :class:`CommentEvent`."""

    def __init__(self) -> None:
        self._handlers: dict[CommentEvent, list[Handler]] = {}
        self._pending: set[asyncio.Task] = set()

    def on(self, event: CommentEvent, handler: Handler) -> None:
        event = CommentEvent(event)
        self._handlers.setdefault(event, []).append(handler)
        logger.debug(
            "Handler registered for '%s' (total=%d)",
            event.value,
            len(self._handlers[event]),
        )

    def off(self, event: CommentEvent, handler: Handler) -> None:
        handlers = self._handlers.get(CommentEvent(event), [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: CommentEvent, data: Any = None) -> None:
        event = CommentEvent(event)
        for handler in list(self._handlers.get(event, [])):
            try:
                result = handler(data)
                if asyncio.iscoroutine(result):
                    task = asyncio.ensure_future(result)
                    self._pending.add(task)
                    task.add_done_callback(self._pending.discard)
            except Exception as exc:
                logger.error("Handler error on '%s': %s", event.value, exc)

    def listener_count(self, event: CommentEvent) -> int:
        return len(self._handlers.get(CommentEvent(event), []))

    def clean_all(self) -> None:
        """Drop every handler.  Called when the session stops."""
        self._handlers.clear()
