"""swarm-comments -- Shared utility modules."""

from swarm_comments.utils.retry import retry_async

__all__ = [
    "retry_async",
]
