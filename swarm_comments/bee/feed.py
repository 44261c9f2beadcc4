"""Indexed feed over single-owner chunks.

A feed is the sequence of SOCs at ``make_feed_identifier(topic, i)`` for
``i = 0, 1, 2, ...`` signed by one owner.  Nothing stops two writers that
share the owner key from uploading to the same ``i``; the node keeps one of
them.  Read-back after write is the only way to find out which.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from eth_account.signers.local import LocalAccount

from swarm_comments.bee.chunk import (
    make_content_addressed_chunk,
    make_feed_identifier,
    make_single_owner_chunk,
    make_soc_address,
    parse_single_owner_chunk,
)
from swarm_comments.bee.client import BeeClient, BeeNotFoundError
from swarm_comments.constants import MAX_CONCURRENT_READS
from swarm_comments.messages.index_codec import NO_INDEX

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeedEntry:
    index: int
    payload: bytes


class SwarmFeed:
    """Read/write access to one feed (topic + shared signer)."""

    def __init__(
        self,
        client: BeeClient,
        topic: bytes,
        signer: LocalAccount,
        name: str = "feed",
        max_concurrent_reads: int = MAX_CONCURRENT_READS,
    ) -> None:
        if max_concurrent_reads < 1:
            raise ValueError(f"max_concurrent_reads must be >= 1, got {max_concurrent_reads}")
        self._client = client
        self._read_slots = asyncio.Semaphore(max_concurrent_reads)
        self._topic = topic
        self._signer = signer
        self._owner = signer.address.lower()
        self.name = name

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def topic(self) -> bytes:
        return self._topic

    def entry_address(self, index: int) -> bytes:
        return make_soc_address(make_feed_identifier(self._topic, index), self._owner)

    async def read_entry(self, index: int) -> Optional[FeedEntry]:
        """Payload at *index*, or None when the slot is empty."""
        try:
            async with self._read_slots:
                data = await self._client.download_chunk(self.entry_address(index))
        except BeeNotFoundError:
            return None
        soc = parse_single_owner_chunk(data, self._owner)
        return FeedEntry(index=index, payload=soc.payload)

    async def read_latest(self) -> Optional[FeedEntry]:
        """Newest entry, or None for an empty feed."""
        try:
            update = await self._client.fetch_latest_feed_update(self._owner, self._topic)
        except BeeNotFoundError:
            logger.debug("Feed %s has no updates yet", self.name)
            return None
        if update.index == NO_INDEX:
            return None
        return FeedEntry(index=update.index, payload=update.payload)

    async def read_range(self, start: int, end: int) -> list[FeedEntry]:
        """Entries in ``[start, end]`` in index order; empty slots are skipped.

        At most ``max_concurrent_reads`` downloads are in flight at once.
        """
        if start < 0 or end < start:
            return []
        results = await asyncio.gather(*(self.read_entry(i) for i in range(start, end + 1)))
        return [entry for entry in results if entry is not None]

    async def write_entry(self, index: int, payload: bytes) -> str:
        """Upload *payload* at *index*.  No exclusivity is implied."""
        chunk = make_content_addressed_chunk(payload)
        soc = make_single_owner_chunk(chunk, make_feed_identifier(self._topic, index), self._signer)
        reference = await self._client.upload_soc(soc)
        logger.debug("Wrote %s entry %d -> %s", self.name, index, reference)
        return reference
