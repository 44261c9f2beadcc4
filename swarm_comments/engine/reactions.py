"""
swarm-comments -- Reaction stream aggregation.

Reaction writes are full-state overwrites: slot ``n`` of the reaction feed
holds every active reaction as of ``n``.  Reading the newest slot is enough
to know the whole state, and a new snapshot replaces the previous one
wholesale for display.

Pointer rules:
    * ``refresh`` moves the pointer to the slot it read, never backwards.
    * A failed refresh is reported and leaves the pointer alone.
    * There is no write guard on this stream.  A poll may observe this
      session's own write before the send path confirms it; both paths
      land on the same snapshot.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from swarm_comments.bee.store import CommentStorage
from swarm_comments.engine.context import SessionContext
from swarm_comments.engine.emitter import CommentEvent
from swarm_comments.messages.index_codec import NO_INDEX
from swarm_comments.messages.reactions import update_reactions
from swarm_comments.messages.schemas import Message, ReactionSnapshot

logger = logging.getLogger(__name__)

FIRST_INDEX = 0


class ReactionAggregator:
    """Owner of the reaction feed pointer and the latest snapshot."""

    def __init__(self, store: CommentStorage, context: SessionContext) -> None:
        self._store = store
        self._ctx = context
        self._pointer: int = NO_INDEX
        self._latest = ReactionSnapshot()

    @property
    def pointer(self) -> int:
        return self._pointer

    @property
    def latest_snapshot(self) -> ReactionSnapshot:
        return self._latest

    def next_write_index(self) -> int:
        return FIRST_INDEX if self._pointer == NO_INDEX else self._pointer + 1

    def _set_pointer(self, index: int) -> None:
        self._pointer = index
        self._ctx.metrics.set_pointer("reactions", index)

    async def init(self, reaction_index: Optional[int] = None) -> None:
        """Find the reaction tip, or start from a checkpointed slot.

        A checkpointed snapshot was already shown to the caller, so it is
        loaded as the merge base without being emitted again.
        """
        if reaction_index is None:
            await self.refresh()
            return

        self._set_pointer(reaction_index)
        logger.debug("Reaction pointer seeded from checkpoint: %d", reaction_index)
        if reaction_index == NO_INDEX:
            return
        try:
            snapshot = await self._store.read_reactions(reaction_index)
        except Exception as exc:
            self._ctx.reporter.report(exc, "ReactionAggregator.init")
            return
        if snapshot is not None:
            self._latest = snapshot

    def reset(self) -> None:
        self._set_pointer(NO_INDEX)
        self._latest = ReactionSnapshot()

    async def refresh(self, after_index: Optional[int] = None) -> int:
        """Read the tip (or the exact slot *after_index*) and return the next free slot.

        A snapshot past the last consumed slot is stored and emitted once as
        ``REACTIONS_RECEIVED``.
        """
        try:
            snapshot = await self._store.read_reactions(after_index)
        except Exception as exc:
            self._ctx.reporter.report(exc, "ReactionAggregator.refresh")
            return self.next_write_index()

        if snapshot is None:
            return self.next_write_index()

        next_free = snapshot.index + 1
        if snapshot.index == self._pointer and self._latest.index != self._pointer:
            # pointer came from a checkpoint whose snapshot was never loaded
            self._latest = snapshot
        elif snapshot.index > self._pointer:
            self._latest = snapshot
            self._set_pointer(next_free - 1)
            logger.debug(
                "Reaction snapshot %d with %d reactions",
                snapshot.index,
                len(snapshot.reactions),
            )
            self._ctx.emitter.emit(CommentEvent.REACTIONS_RECEIVED, snapshot)
        return max(next_free, self.next_write_index())

    def prepare_write(
        self,
        prior_state: Optional[Iterable[Message]],
        new_reaction: Message,
    ) -> tuple[ReactionSnapshot, int]:
        """Merge *new_reaction* into *prior_state* and pick the target slot.

        Without *prior_state* the latest snapshot this session has seen is
        used as the base.
        """
        target = self.next_write_index()
        placed = new_reaction.model_copy(update={"index": target})
        base = self._latest.reactions if prior_state is None else prior_state
        state = update_reactions(base, placed)
        return ReactionSnapshot(index=target, reactions=state), target

    def confirm_write(self, snapshot: ReactionSnapshot) -> None:
        if snapshot.index > self._pointer:
            self._set_pointer(snapshot.index)
            self._latest = snapshot
