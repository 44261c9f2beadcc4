"""Shared per-session handles.

Every engine component receives one :class:`SessionContext` at construction
instead of reaching for process-wide singletons.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from swarm_comments.engine.emitter import EventEmitter
from swarm_comments.observability.metrics import CommentMetrics

logger = logging.getLogger(__name__)


class ErrorReporter:
    """Logs errors with their context and counts them."""

    def __init__(self, metrics: CommentMetrics, log: logging.Logger = logger) -> None:
        self._metrics = metrics
        self._log = log

    def report(self, error: BaseException, context: str = "unknown context") -> None:
        self._log.error(
            "Error in %s: %s",
            context,
            str(error) or type(error).__name__,
            exc_info=(type(error), error, error.__traceback__),
        )
        self._metrics.record_error(context)


@dataclass
class SessionContext:
    emitter: EventEmitter = field(default_factory=EventEmitter)
    metrics: CommentMetrics = field(default_factory=CommentMetrics)
    reporter: ErrorReporter = field(init=False)

    def __post_init__(self) -> None:
        self.reporter = ErrorReporter(self.metrics)
