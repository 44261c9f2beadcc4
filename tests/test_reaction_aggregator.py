"""Tests for reaction stream aggregation."""

import pytest

from swarm_comments.engine.emitter import CommentEvent
from swarm_comments.engine.reactions import ReactionAggregator
from swarm_comments.messages.schemas import Message, MessageType


def reaction(id, address="aa", body="+1", target="c1"):
    return Message(
        id=id,
        type=MessageType.REACTION,
        target_message_id=target,
        address=address,
        message=body,
    )


@pytest.fixture
def aggregator(store, context):
    return ReactionAggregator(store, context)


@pytest.fixture
def snapshots(context):
    seen = []
    context.emitter.on(CommentEvent.REACTIONS_RECEIVED, seen.append)
    return seen


class TestInit:

    @pytest.mark.asyncio
    async def test_empty_feed(self, aggregator, snapshots):
        await aggregator.init()
        assert aggregator.pointer == -1
        assert aggregator.next_write_index() == 0
        assert snapshots == []

    @pytest.mark.asyncio
    async def test_adopts_latest_snapshot(self, aggregator, store, snapshots):
        store.put_reactions([reaction("r0")], 0)
        store.put_reactions([reaction("r0"), reaction("r1", address="bb")], 1)
        await aggregator.init()
        assert aggregator.pointer == 1
        assert aggregator.latest_snapshot.ids() == {"r0", "r1"}
        assert len(snapshots) == 1

    @pytest.mark.asyncio
    async def test_checkpoint_read_failure_keeps_pointer(self, aggregator, store, snapshots, context):
        store.reaction_failures = 1
        await aggregator.init(reaction_index=4)
        assert aggregator.pointer == 4
        assert aggregator.next_write_index() == 5
        assert snapshots == []
        assert context.metrics.sample(
            "swarm_comment_errors_total", {"context": "ReactionAggregator.init"}
        ) == 1

    @pytest.mark.asyncio
    async def test_checkpoint_loads_snapshot_without_emitting(self, aggregator, store, snapshots):
        store.put_reactions([reaction("r0", address="bb")], 0)
        await aggregator.init(reaction_index=0)
        assert aggregator.pointer == 0
        assert aggregator.latest_snapshot.ids() == {"r0"}
        assert snapshots == []

        snapshot, index = aggregator.prepare_write(None, reaction("r1", body="<3"))
        assert index == 1
        assert snapshot.ids() == {"r0", "r1"}

    @pytest.mark.asyncio
    async def test_refresh_loads_unseen_snapshot_at_pointer(self, aggregator, store, snapshots):
        store.reaction_failures = 1
        await aggregator.init(reaction_index=0)
        store.put_reactions([reaction("r0", address="bb")], 0)

        assert await aggregator.refresh() == 1
        assert aggregator.pointer == 0
        assert aggregator.latest_snapshot.ids() == {"r0"}
        assert snapshots == []


class TestRefresh:

    @pytest.mark.asyncio
    async def test_next_slot_empty(self, aggregator, store, snapshots):
        store.put_reactions([reaction("r0")], 0)
        await aggregator.init()
        assert await aggregator.refresh(aggregator.pointer + 1) == 1
        assert aggregator.pointer == 0
        assert len(snapshots) == 1

    @pytest.mark.asyncio
    async def test_new_snapshot_replaces_state(self, aggregator, store, snapshots):
        store.put_reactions([reaction("r0")], 0)
        await aggregator.init()
        store.put_reactions([], 1)
        assert await aggregator.refresh(1) == 2
        assert aggregator.pointer == 1
        assert aggregator.latest_snapshot.reactions == []
        assert [s.index for s in snapshots] == [0, 1]

    @pytest.mark.asyncio
    async def test_older_snapshot_ignored(self, aggregator, store, snapshots):
        store.put_reactions([reaction("r0")], 0)
        await aggregator.init(reaction_index=3)
        assert await aggregator.refresh(0) == 4
        assert aggregator.pointer == 3
        assert snapshots == []

    @pytest.mark.asyncio
    async def test_failure_reported(self, aggregator, store, context):
        await aggregator.init(reaction_index=2)
        store.reaction_failures = 1
        assert await aggregator.refresh(3) == 3
        assert aggregator.pointer == 2
        assert context.metrics.sample(
            "swarm_comment_errors_total", {"context": "ReactionAggregator.refresh"}
        ) == 1


class TestWrite:

    @pytest.mark.asyncio
    async def test_prepare_uses_latest_snapshot(self, aggregator, store):
        store.put_reactions([reaction("r0", address="bb")], 0)
        await aggregator.init()
        snapshot, index = aggregator.prepare_write(None, reaction("r1"))
        assert index == 1
        assert snapshot.index == 1
        assert snapshot.ids() == {"r0", "r1"}
        assert snapshot.find("r1").index == 1

    @pytest.mark.asyncio
    async def test_prepare_with_explicit_prior_state(self, aggregator):
        snapshot, index = aggregator.prepare_write([], reaction("r1"))
        assert index == 0
        assert snapshot.ids() == {"r1"}

    @pytest.mark.asyncio
    async def test_write_then_refresh_converges(self, aggregator, store, snapshots):
        await aggregator.init()
        snapshot, index = aggregator.prepare_write(None, reaction("r1"))
        await store.write_reactions(snapshot.reactions, index)
        aggregator.confirm_write(snapshot)
        assert aggregator.pointer == 0

        await aggregator.refresh(aggregator.pointer + 1)
        assert aggregator.pointer == 0
        assert aggregator.latest_snapshot.ids() == {"r1"}
        assert snapshots == []

    @pytest.mark.asyncio
    async def test_poll_before_confirm_converges(self, aggregator, store):
        await aggregator.init()
        snapshot, index = aggregator.prepare_write(None, reaction("r1"))
        await store.write_reactions(snapshot.reactions, index)
        await aggregator.refresh(0)
        aggregator.confirm_write(snapshot)
        assert aggregator.pointer == 0
        assert aggregator.latest_snapshot.ids() == {"r1"}

    def test_reset(self, aggregator):
        aggregator.confirm_write(aggregator.prepare_write([], reaction("r1"))[0])
        aggregator.reset()
        assert aggregator.pointer == -1
        assert aggregator.latest_snapshot.reactions == []
