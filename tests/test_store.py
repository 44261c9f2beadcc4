"""Tests for the Bee-backed comment store."""

import json

import pytest

from swarm_comments.bee.chunk import make_feed_identifier, make_soc_address, parse_single_owner_chunk
from swarm_comments.bee.client import BeeNotFoundError, FeedUpdate
from swarm_comments.bee.feed import FeedEntry
from swarm_comments.bee.keys import feed_signer_from_topic, reaction_feed_topic, topic_to_bytes
from swarm_comments.bee.store import CommentStore, decode_comment, decode_reactions, encode_reactions
from swarm_comments.messages.schemas import Message, MessageType
from swarm_comments.messages.signing import validate_user_signature

from conftest import TOPIC, make_signed_message


class InMemoryBee:
    """Stores uploaded SOCs by address; first upload at an address wins."""

    def __init__(self):
        self.chunks: dict[bytes, bytes] = {}
        self.closed = False

    async def upload_soc(self, soc):
        self.chunks.setdefault(soc.address, soc.data)
        return soc.address.hex()

    async def download_chunk(self, address):
        if address not in self.chunks:
            raise BeeNotFoundError(404, address.hex())
        return self.chunks[address]

    async def fetch_latest_feed_update(self, owner, topic):
        index = 0
        while make_soc_address(make_feed_identifier(topic, index), owner) in self.chunks:
            index += 1
        if index == 0:
            raise BeeNotFoundError(404, "feed")
        data = self.chunks[make_soc_address(make_feed_identifier(topic, index - 1), owner)]
        soc = parse_single_owner_chunk(data, owner)
        return FeedUpdate(payload=soc.payload, index=index - 1, next_index=index)

    async def close(self):
        self.closed = True


@pytest.fixture
def bee():
    return InMemoryBee()


@pytest.fixture
def comment_store(bee):
    return CommentStore("http://bee", TOPIC, client=bee)


class TestDecoding:

    def test_decode_comment_uses_slot_index(self):
        payload = make_signed_message(index=99).to_payload()
        msg = decode_comment(FeedEntry(index=4, payload=payload))
        assert msg.index == 4
        assert validate_user_signature(msg)

    def test_garbage_comment_becomes_invalid_placeholder(self):
        msg = decode_comment(FeedEntry(index=6, payload=b"\xff not json"))
        assert msg.index == 6
        assert not validate_user_signature(msg)

    def test_reactions_json_array(self):
        r = Message(id="r", type=MessageType.REACTION, target_message_id="c", message="+1")
        data = json.loads(encode_reactions([r]))
        assert isinstance(data, list)
        assert data[0]["targetMessageId"] == "c"
        snapshot = decode_reactions(FeedEntry(index=2, payload=encode_reactions([r])))
        assert snapshot.index == 2
        assert snapshot.ids() == {"r"}

    def test_garbage_reactions_become_empty_snapshot(self):
        snapshot = decode_reactions(FeedEntry(index=1, payload=b"{}"))
        assert snapshot.index == 1
        assert snapshot.reactions == []


class TestCommentStore:

    def test_owner_is_topic_signer(self, comment_store):
        assert comment_store.owner == feed_signer_from_topic(TOPIC).address.lower()
        assert comment_store.topic_hex == topic_to_bytes(TOPIC).hex()
        assert comment_store.reactions.topic == reaction_feed_topic(TOPIC)

    @pytest.mark.asyncio
    async def test_empty_feed(self, comment_store):
        assert await comment_store.read_latest_comment() is None
        assert await comment_store.read_comment(0) is None
        assert await comment_store.read_reactions() is None

    @pytest.mark.asyncio
    async def test_write_then_read(self, comment_store):
        first = make_signed_message(text="one")
        second = make_signed_message(text="two", timestamp=1_700_000_000_001)
        await comment_store.write_comment(first, 0)
        await comment_store.write_comment(second, 1)

        latest = await comment_store.read_latest_comment()
        assert latest.index == 1
        assert latest.message == "two"
        assert validate_user_signature(latest)

        assert (await comment_store.read_comment(0)).id == first.id
        assert [m.index for m in await comment_store.read_comments_in_range(0, 5)] == [0, 1]

    @pytest.mark.asyncio
    async def test_first_writer_keeps_slot(self, comment_store):
        mine = make_signed_message(text="mine")
        theirs = make_signed_message(text="theirs", timestamp=1_700_000_000_005)
        await comment_store.write_comment(theirs, 0)
        await comment_store.write_comment(mine, 0)
        assert (await comment_store.read_comment(0)).id == theirs.id

    @pytest.mark.asyncio
    async def test_reaction_feed_is_separate(self, comment_store):
        r = Message(id="r", type=MessageType.REACTION, target_message_id="c", message="+1")
        await comment_store.write_reactions([r], 0)

        assert await comment_store.read_latest_comment() is None
        latest = await comment_store.read_reactions()
        assert latest.index == 0
        assert latest.ids() == {"r"}
        assert (await comment_store.read_reactions(0)).ids() == {"r"}
        assert await comment_store.read_reactions(1) is None

    @pytest.mark.asyncio
    async def test_close(self, comment_store, bee):
        await comment_store.close()
        assert bee.closed
