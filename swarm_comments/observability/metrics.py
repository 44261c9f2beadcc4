"""Prometheus metrics for a comment session.

Minimum metrics that explain a misbehaving session:
- writes by stream and outcome (ok / collision / failed)
- signature rejections
- poll ticks
- errors by reporting context
- local stream pointers (message, reaction, history cursor)

Each :class:`CommentMetrics` owns its own ``CollectorRegistry`` so several
sessions (and tests) can live in one process.
"""

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, start_http_server

logger = logging.getLogger(__name__)


class CommentMetrics:
    """Per-session Prometheus metrics."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._started = False

        # === Writes ===
        self.writes = Counter(
            'swarm_comment_writes_total',
            'Feed writes by stream and outcome',
            ['stream', 'outcome'],
            registry=self.registry,
        )

        # === Reads ===
        self.messages_received = Counter(
            'swarm_comment_messages_received_total',
            'Messages delivered to the caller',
            ['source'],
            registry=self.registry,
        )

        self.signature_rejections = Counter(
            'swarm_comment_signature_rejections_total',
            'Entries dropped because the author signature did not verify',
            registry=self.registry,
        )

        # === Polling ===
        self.poll_ticks = Counter(
            'swarm_comment_poll_ticks_total',
            'Completed poll ticks',
            registry=self.registry,
        )

        # === Errors ===
        self.errors = Counter(
            'swarm_comment_errors_total',
            'Reported errors by context',
            ['context'],
            registry=self.registry,
        )

        # === Pointers ===
        self.stream_pointer = Gauge(
            'swarm_comment_stream_pointer',
            'Locally known tip per stream (-1 = unknown)',
            ['stream'],
            registry=self.registry,
        )

    def start_server(self, port: int) -> None:
        """Expose this registry over HTTP."""
        if self._started:
            return
        start_http_server(port, registry=self.registry)
        self._started = True
        logger.info(f"Metrics server started on port {port}")

    def record_write(self, stream: str, outcome: str) -> None:
        self.writes.labels(stream=stream, outcome=outcome).inc()

    def record_received(self, source: str, count: int = 1) -> None:
        if count:
            self.messages_received.labels(source=source).inc(count)

    def record_rejection(self) -> None:
        self.signature_rejections.inc()

    def record_error(self, context: str) -> None:
        self.errors.labels(context=context).inc()

    def record_tick(self) -> None:
        self.poll_ticks.inc()

    def set_pointer(self, stream: str, value: int) -> None:
        self.stream_pointer.labels(stream=stream).set(value)

    def sample(self, name: str, labels: Optional[dict] = None) -> float:
        """Current value of a sample (0.0 when absent)."""
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0
