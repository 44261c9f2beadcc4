"""Pytest configuration and shared fixtures."""
import pytest
import sys
import os
from typing import Iterable, Optional

# Ensure the project root is on sys.path so 'swarm_comments' is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from swarm_comments.engine.context import SessionContext
from swarm_comments.messages.schemas import Message, MessageType, ReactionSnapshot
from swarm_comments.messages.signing import address_from_key, sign_message

ALICE_KEY = "0x" + "11" * 32
BOB_KEY = "0x" + "22" * 32
TOPIC = "my-article"


class FakeCommentStore:
    """In-memory CommentStorage with knobs for failures and lost races."""

    def __init__(self):
        self.comments: dict[int, Message] = {}
        self.reactions: dict[int, ReactionSnapshot] = {}
        self.latest_failures = 0
        self.range_failures = 0
        self.reaction_failures = 0
        self.latest_calls = 0
        self.range_calls: list[tuple[int, int]] = []
        self.comment_interloper: Optional[Message] = None
        self.reaction_interloper: Optional[list[Message]] = None
        self.drop_writes = False
        self.closed = False

    # -- helpers for tests -------------------------------------------------

    def put_comment(self, message: Message, index: int) -> Message:
        placed = message.model_copy(update={"index": index})
        self.comments[index] = placed
        return placed

    def put_reactions(self, reactions: Iterable[Message], index: int) -> ReactionSnapshot:
        snapshot = ReactionSnapshot(index=index, reactions=list(reactions))
        self.reactions[index] = snapshot
        return snapshot

    # -- CommentStorage ----------------------------------------------------

    async def read_latest_comment(self) -> Optional[Message]:
        self.latest_calls += 1
        if self.latest_failures > 0:
            self.latest_failures -= 1
            raise ConnectionError("bee unavailable")
        if not self.comments:
            return None
        return self.comments[max(self.comments)]

    async def read_comment(self, index: int) -> Optional[Message]:
        return self.comments.get(index)

    async def read_comments_in_range(self, start: int, end: int) -> list[Message]:
        self.range_calls.append((start, end))
        if self.range_failures > 0:
            self.range_failures -= 1
            raise ConnectionError("bee unavailable")
        return [self.comments[i] for i in range(start, end + 1) if i in self.comments]

    async def write_comment(self, message: Message, index: int) -> str:
        if self.drop_writes:
            return "ref"
        if index in self.comments:
            # the node keeps the first upload at a slot
            return "ref"
        if self.comment_interloper is not None:
            self.put_comment(self.comment_interloper, index)
            return "ref"
        self.put_comment(message, index)
        return "ref"

    async def read_reactions(self, index: Optional[int] = None) -> Optional[ReactionSnapshot]:
        if self.reaction_failures > 0:
            self.reaction_failures -= 1
            raise ConnectionError("bee unavailable")
        if index is None:
            if not self.reactions:
                return None
            return self.reactions[max(self.reactions)]
        return self.reactions.get(index)

    async def write_reactions(self, reactions: Iterable[Message], index: int) -> str:
        if self.reaction_interloper is not None:
            self.put_reactions(self.reaction_interloper, index)
            return "ref"
        self.put_reactions(reactions, index)
        return "ref"

    async def close(self) -> None:
        self.closed = True


def make_signed_message(
    private_key: str = ALICE_KEY,
    text: str = "hello",
    username: str = "alice",
    timestamp: int = 1_700_000_000_000,
    type: MessageType = MessageType.TEXT,
    target_message_id: Optional[str] = None,
    index: int = -1,
    message_id: Optional[str] = None,
) -> Message:
    address = address_from_key(private_key)
    fields = {}
    if message_id is not None:
        fields["id"] = message_id
    return Message(
        username=username,
        address=address,
        topic="t",
        signature=sign_message(private_key, username, address, timestamp, text),
        timestamp=timestamp,
        type=type,
        target_message_id=target_message_id,
        index=index,
        message=text,
        **fields,
    )


@pytest.fixture
def store():
    return FakeCommentStore()


@pytest.fixture
def context():
    return SessionContext()


@pytest.fixture
def received(context):
    """Collects MESSAGE_RECEIVED payloads in delivery order."""
    from swarm_comments.engine.emitter import CommentEvent

    messages: list[Message] = []
    context.emitter.on(CommentEvent.MESSAGE_RECEIVED, messages.append)
    return messages


@pytest.fixture
def signed():
    """Factory for author-signed messages."""
    return make_signed_message
