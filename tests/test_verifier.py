"""Tests for read-your-write verification."""

import pytest

from swarm_comments.engine.verifier import CollisionError, WriteVerificationError, WriteVerifier
from swarm_comments.messages.schemas import Message, MessageType, ReactionSnapshot

from conftest import BOB_KEY, make_signed_message


def reaction(id, timestamp=1):
    return Message(
        id=id,
        type=MessageType.REACTION,
        target_message_id="c",
        message="+1",
        timestamp=timestamp,
    )


@pytest.fixture
def verifier(store):
    return WriteVerifier(store)


class TestVerifyComment:

    @pytest.mark.asyncio
    async def test_own_entry(self, verifier, store):
        mine = store.put_comment(make_signed_message(), 0)
        found = await verifier.verify_comment(0, mine)
        assert found.id == mine.id

    @pytest.mark.asyncio
    async def test_empty_slot(self, verifier):
        with pytest.raises(WriteVerificationError) as exc_info:
            await verifier.verify_comment(0, make_signed_message())
        assert not isinstance(exc_info.value, CollisionError)

    @pytest.mark.asyncio
    async def test_other_writer(self, verifier, store):
        store.put_comment(make_signed_message(BOB_KEY, text="theirs"), 3)
        with pytest.raises(CollisionError) as exc_info:
            await verifier.verify_comment(3, make_signed_message(text="mine"))
        assert exc_info.value.index == 3
        assert exc_info.value.stream == "comments"

    @pytest.mark.asyncio
    async def test_same_id_different_timestamp(self, verifier, store):
        mine = make_signed_message(message_id="x", timestamp=1)
        store.put_comment(make_signed_message(message_id="x", timestamp=2), 0)
        with pytest.raises(CollisionError):
            await verifier.verify_comment(0, mine)


class TestVerifyReactions:

    @pytest.mark.asyncio
    async def test_own_snapshot(self, verifier, store):
        r = reaction("r1")
        written = store.put_reactions([r], 0)
        assert (await verifier.verify_reactions(0, written, r)).ids() == {"r1"}

    @pytest.mark.asyncio
    async def test_toggle_off_snapshot(self, verifier, store):
        written = store.put_reactions([], 1)
        await verifier.verify_reactions(1, written, reaction("r1"))

    @pytest.mark.asyncio
    async def test_empty_slot(self, verifier):
        with pytest.raises(WriteVerificationError):
            await verifier.verify_reactions(0, ReactionSnapshot(index=0), reaction("r1"))

    @pytest.mark.asyncio
    async def test_other_snapshot(self, verifier, store):
        store.put_reactions([reaction("theirs")], 0)
        written = ReactionSnapshot(index=0, reactions=[reaction("mine")])
        with pytest.raises(CollisionError):
            await verifier.verify_reactions(0, written, reaction("mine"))

    @pytest.mark.asyncio
    async def test_same_ids_other_timestamp(self, verifier, store):
        store.put_reactions([reaction("r1", timestamp=5)], 0)
        written = ReactionSnapshot(index=0, reactions=[reaction("r1", timestamp=6)])
        with pytest.raises(CollisionError):
            await verifier.verify_reactions(0, written, reaction("r1", timestamp=6))
