"""
swarm-comments -- Message schemas.

A comment travels as a compact JSON document inside a single-owner chunk.
The wire keys are camelCase (``targetMessageId``, ``isLegacy``) so that
payloads written by other comment-system clients decode unchanged; the
Python attributes are snake_case.

Field semantics:
    id:
        Opaque unique identifier chosen by the author (uuid4 by default).
        Kept across retries so the caller can correlate a retried request
        with the original.

    address / username:
        The author's Ethereum address and display name.  Both are covered
        by ``signature``.

    signature:
        Hex of the 65 byte ``r || s || v`` author signature.  Independent of
        the shared feed key that authorises the chunk itself.

    timestamp:
        Unix epoch in milliseconds.  Also covered by the signature.

    index:
        Slot in the feed.  ``-1`` means the message has not been placed yet.
        Serialised as a decimal string; parsed from decimal or hex.

    is_legacy:
        Older payloads without author signatures.  Always accepted.
"""

from __future__ import annotations

import enum
import uuid
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from swarm_comments.messages.index_codec import NO_INDEX, decode_index, encode_decimal


class MessageType(str, enum.Enum):
    TEXT = "text"
    THREAD = "thread"
    REACTION = "reaction"


def generate_message_id() -> str:
    return str(uuid.uuid4())


class Message(BaseModel):
    """A single comment, thread reply or reaction."""

    id: str = Field(default_factory=generate_message_id)
    username: str = ""
    address: str = ""
    topic: str = ""
    signature: Optional[str] = None
    timestamp: int = 0
    type: MessageType = MessageType.TEXT
    target_message_id: Optional[str] = Field(default=None, alias="targetMessageId")
    index: int = NO_INDEX
    message: str = ""
    is_legacy: bool = Field(default=False, alias="isLegacy")

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        use_enum_values=False,
    )

    @field_validator("index", mode="before")
    @classmethod
    def _parse_index(cls, value: Any) -> int:
        return decode_index(value)

    @field_serializer("index")
    def _serialize_index(self, value: int) -> Optional[str]:
        if value == NO_INDEX:
            return None
        return encode_decimal(value)

    @property
    def is_placed(self) -> bool:
        return self.index >= 0

    def to_payload(self) -> bytes:
        """Compact JSON bytes, as stored in the feed."""
        return self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")

    @classmethod
    def from_payload(cls, payload: bytes | str) -> Message:
        return cls.model_validate_json(payload)


class ReactionSnapshot(BaseModel):
    """Full reaction state stored at one reaction-feed slot.

    Every write to the reaction feed carries the complete set of active
    reactions, so the newest snapshot is all a reader needs.
    """

    index: int = NO_INDEX
    reactions: list[Message] = Field(default_factory=list)

    @field_validator("index", mode="before")
    @classmethod
    def _parse_index(cls, value: Any) -> int:
        return decode_index(value)

    def ids(self) -> set[str]:
        return {r.id for r in self.reactions}

    def find(self, message_id: str) -> Optional[Message]:
        for reaction in self.reactions:
            if reaction.id == message_id:
                return reaction
        return None

    def for_target(self, target_message_id: str) -> list[Message]:
        return [r for r in self.reactions if r.target_message_id == target_message_id]


def order_messages(messages: list[Message]) -> list[Message]:
    """Sort messages by timestamp, oldest first."""
    return sorted(messages, key=lambda m: m.timestamp)
