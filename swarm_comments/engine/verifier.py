"""
swarm-comments -- Read-your-write verification.

The feed key is shared, so an upload that "succeeded" may still have lost
its slot to another writer.  After every write the slot is read back:

    empty slot                          -> WriteVerificationError
    slot holds someone else's entry     -> CollisionError
    slot holds our entry                -> ok

No retry happens here.  A collision leaves the local pointer untouched; the
caller resyncs and decides whether to resend.
"""

from __future__ import annotations

import logging

from swarm_comments.bee.store import CommentStorage
from swarm_comments.messages.schemas import Message, ReactionSnapshot

logger = logging.getLogger(__name__)


class WriteVerificationError(Exception):
    """The written entry could not be read back."""

    def __init__(self, stream: str, index: int, detail: str) -> None:
        self.stream = stream
        self.index = index
        super().__init__(f"{stream} write check failed at index {index}: {detail}")


class CollisionError(WriteVerificationError):
    """Another writer occupies the slot this session just wrote."""

    def __init__(self, stream: str, index: int, expected: str, found: str) -> None:
        self.expected = expected
        self.found = found
        super().__init__(stream, index, f"expected {expected}, got {found}")


class WriteVerifier:
    def __init__(self, store: CommentStorage) -> None:
        self._store = store

    async def verify_comment(self, index: int, expected: Message) -> Message:
        """Return the read-back comment if it is ours."""
        found = await self._store.read_comment(index)
        if found is None:
            raise WriteVerificationError("comments", index, "empty response")

        if found.id != expected.id or found.timestamp != expected.timestamp:
            logger.warning(
                "Collision on comments[%d]: expected %r, got %r",
                index,
                expected.message,
                found.message,
            )
            raise CollisionError(
                "comments",
                index,
                expected=f"id={expected.id} timestamp={expected.timestamp}",
                found=f"id={found.id} timestamp={found.timestamp}",
            )
        return found

    async def verify_reactions(
        self,
        index: int,
        written: ReactionSnapshot,
        reaction: Message,
    ) -> ReactionSnapshot:
        """Return the read-back snapshot if it is the one we wrote.

        *reaction* is the delta folded into *written*; it is absent from the
        snapshot when the write toggled it off.
        """
        found = await self._store.read_reactions(index)
        if found is None:
            raise WriteVerificationError("reactions", index, "empty response")

        if found.ids() != written.ids():
            raise CollisionError(
                "reactions",
                index,
                expected=f"{len(written.reactions)} reactions",
                found=f"{len(found.reactions)} reactions",
            )

        ours = found.find(reaction.id)
        if ours is not None and ours.timestamp != reaction.timestamp:
            raise CollisionError(
                "reactions",
                index,
                expected=f"id={reaction.id} timestamp={reaction.timestamp}",
                found=f"id={ours.id} timestamp={ours.timestamp}",
            )
        return found
