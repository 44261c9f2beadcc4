"""
swarm-comments -- Comment and reaction storage.

Two feeds per topic, both signed with the topic-derived key:

    comments:   one :class:`Message` JSON document per slot.
    reactions:  one JSON array per slot holding the *complete* reaction state.

The engine talks to storage only through the :class:`CommentStorage`
protocol below, so tests can swap in an in-memory implementation.

Slots written by strangers may hold anything.  Undecodable comment payloads
come back as an unsigned placeholder that still carries the slot index (the
slot is occupied even if the content is garbage); undecodable reaction
payloads come back as an empty snapshot.
"""

from __future__ import annotations

import json
import logging
from typing import Iterable, Optional, Protocol

from pydantic import TypeAdapter, ValidationError

from swarm_comments.bee.client import PLACEHOLDER_STAMP, BeeClient
from swarm_comments.bee.feed import FeedEntry, SwarmFeed
from swarm_comments.bee.keys import feed_signer_from_topic, reaction_feed_topic, topic_to_bytes
from swarm_comments.constants import MAX_CONCURRENT_READS
from swarm_comments.messages.schemas import Message, ReactionSnapshot

logger = logging.getLogger(__name__)

_REACTION_LIST = TypeAdapter(list[Message])


class CommentStorage(Protocol):
    """Storage operations the engine depends on.

    Every read returns ``None`` (or an empty list) for empty slots and raises
    on transport failure.
    """

    async def read_latest_comment(self) -> Optional[Message]:
        ...

    async def read_comment(self, index: int) -> Optional[Message]:
        ...

    async def read_comments_in_range(self, start: int, end: int) -> list[Message]:
        ...

    async def write_comment(self, message: Message, index: int) -> str:
        ...

    async def read_reactions(self, index: Optional[int] = None) -> Optional[ReactionSnapshot]:
        ...

    async def write_reactions(self, reactions: Iterable[Message], index: int) -> str:
        ...

    async def close(self) -> None:
        ...


def decode_comment(entry: FeedEntry) -> Message:
    try:
        message = Message.from_payload(entry.payload)
    except ValidationError as exc:
        logger.warning("Undecodable comment at index %d: %s", entry.index, exc.error_count())
        return Message(id="", index=entry.index)
    return message.model_copy(update={"index": entry.index})


def decode_reactions(entry: FeedEntry) -> ReactionSnapshot:
    try:
        reactions = _REACTION_LIST.validate_json(entry.payload)
    except ValidationError as exc:
        logger.warning("Undecodable reaction state at index %d: %s", entry.index, exc.error_count())
        reactions = []
    return ReactionSnapshot(index=entry.index, reactions=reactions)


def encode_reactions(reactions: Iterable[Message]) -> bytes:
    items = [
        json.loads(r.model_dump_json(by_alias=True, exclude_none=True))
        for r in reactions
    ]
    return json.dumps(items, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


class CommentStore:
    """Bee-backed :class:`CommentStorage` for one topic."""

    def __init__(
        self,
        bee_url: str,
        topic: str,
        stamp: str = PLACEHOLDER_STAMP,
        timeout_seconds: float = 15.0,
        client: Optional[BeeClient] = None,
        max_concurrent_reads: int = MAX_CONCURRENT_READS,
    ) -> None:
        self._client = client or BeeClient(bee_url, stamp=stamp, timeout_seconds=timeout_seconds)
        signer = feed_signer_from_topic(topic)
        self.topic_hex = topic_to_bytes(topic).hex()
        self.comments = SwarmFeed(
            self._client,
            topic_to_bytes(topic),
            signer,
            name="comments",
            max_concurrent_reads=max_concurrent_reads,
        )
        self.reactions = SwarmFeed(
            self._client,
            reaction_feed_topic(topic),
            signer,
            name="reactions",
            max_concurrent_reads=max_concurrent_reads,
        )

    @property
    def owner(self) -> str:
        return self.comments.owner

    async def read_latest_comment(self) -> Optional[Message]:
        entry = await self.comments.read_latest()
        return decode_comment(entry) if entry else None

    async def read_comment(self, index: int) -> Optional[Message]:
        entry = await self.comments.read_entry(index)
        return decode_comment(entry) if entry else None

    async def read_comments_in_range(self, start: int, end: int) -> list[Message]:
        return [decode_comment(entry) for entry in await self.comments.read_range(start, end)]

    async def write_comment(self, message: Message, index: int) -> str:
        placed = message.model_copy(update={"index": index})
        return await self.comments.write_entry(index, placed.to_payload())

    async def read_reactions(self, index: Optional[int] = None) -> Optional[ReactionSnapshot]:
        if index is None:
            entry = await self.reactions.read_latest()
        else:
            entry = await self.reactions.read_entry(index)
        return decode_reactions(entry) if entry else None

    async def write_reactions(self, reactions: Iterable[Message], index: int) -> str:
        return await self.reactions.write_entry(index, encode_reactions(reactions))

    async def close(self) -> None:
        await self._client.close()
