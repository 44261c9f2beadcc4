"""swarm-comments -- Observability package.

Prometheus metrics for comment sessions.
"""

from swarm_comments.observability.metrics import CommentMetrics

__all__: list[str] = [
    "CommentMetrics",
]
