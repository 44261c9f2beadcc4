"""swarm-comments -- Stream reconciliation and polling engine."""

from swarm_comments.engine.comment import SwarmComment
from swarm_comments.engine.context import ErrorReporter, SessionContext
from swarm_comments.engine.emitter import CommentEvent, EventEmitter
from swarm_comments.engine.verifier import CollisionError, WriteVerificationError

__all__: list[str] = [
    "SwarmComment",
    "SessionContext",
    "ErrorReporter",
    "CommentEvent",
    "EventEmitter",
    "CollisionError",
    "WriteVerificationError",
]
