"""Bee node HTTP client.

API: ``{bee_url}/soc``, ``{bee_url}/chunks``, ``{bee_url}/feeds``
Provides: single-owner chunk upload, raw chunk download, latest feed update
lookup.

Errors are raised, never turned into empty results: callers decide whether a
failed read means "retry", "report" or "fatal".  A 404 is raised as
:class:`BeeNotFoundError` so callers can treat it as an empty slot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

from swarm_comments.bee.chunk import SingleOwnerChunk
from swarm_comments.messages.index_codec import NO_INDEX, decode_index

logger = logging.getLogger(__name__)

PLACEHOLDER_STAMP = "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"

STAMP_HEADER = "swarm-postage-batch-id"
FEED_INDEX_HEADER = "swarm-feed-index"
FEED_INDEX_NEXT_HEADER = "swarm-feed-index-next"
ONLY_ROOT_CHUNK_HEADER = "swarm-only-root-chunk"


class BeeError(Exception):
    """Base class for Bee client failures."""


class BeeResponseError(BeeError):
    """The node answered with an unexpected HTTP status."""

    def __init__(self, status: int, url: str, body: str = "") -> None:
        self.status = status
        self.url = url
        self.body = body
        super().__init__(f"Bee request {url} failed with status {status}: {body[:200]}")


class BeeNotFoundError(BeeResponseError):
    """The requested chunk or feed does not exist (yet)."""


def is_not_found_error(error: BaseException) -> bool:
    return isinstance(error, BeeNotFoundError)


@dataclass(frozen=True)
class FeedUpdate:
    """Latest update of a feed as reported by the node."""

    payload: bytes
    index: int
    next_index: int


class BeeClient:
    """Thin async wrapper over the Bee HTTP API."""

    def __init__(
        self,
        bee_url: str,
        stamp: str = PLACEHOLDER_STAMP,
        timeout_seconds: float = 15.0,
    ) -> None:
        self._bee_url = bee_url.rstrip("/")
        self._stamp = stamp[2:] if stamp.startswith("0x") else stamp
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def bee_url(self) -> str:
        return self._bee_url

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def upload_soc(self, soc: SingleOwnerChunk) -> str:
        """Upload a single-owner chunk; returns the reference reported by Bee."""
        url = f"{self._bee_url}/soc/{soc.owner.removeprefix('0x')}/{soc.identifier.hex()}"
        session = await self._get_session()
        async with session.post(
            url,
            params={"sig": soc.signature.hex()},
            data=soc.chunk.data,
            headers={
                STAMP_HEADER: self._stamp,
                "Content-Type": "application/octet-stream",
            },
        ) as resp:
            if resp.status not in (200, 201):
                raise BeeResponseError(resp.status, url, await resp.text())
            body = await resp.json()
            reference = body.get("reference", "")
            if not reference:
                raise BeeError(f"Bee returned no reference for {url}")
            logger.debug("Uploaded SOC %s", reference)
            return reference

    async def download_chunk(self, address: bytes) -> bytes:
        url = f"{self._bee_url}/chunks/{address.hex()}"
        session = await self._get_session()
        async with session.get(url) as resp:
            if resp.status == 404:
                raise BeeNotFoundError(resp.status, url)
            if resp.status != 200:
                raise BeeResponseError(resp.status, url, await resp.text())
            return await resp.read()

    async def fetch_latest_feed_update(self, owner: str, topic: bytes) -> FeedUpdate:
        url = f"{self._bee_url}/feeds/{owner.removeprefix('0x')}/{topic.hex()}"
        session = await self._get_session()
        async with session.get(url, headers={ONLY_ROOT_CHUNK_HEADER: "true"}) as resp:
            if resp.status == 404:
                raise BeeNotFoundError(resp.status, url)
            if resp.status != 200:
                raise BeeResponseError(resp.status, url, await resp.text())
            index = decode_index(resp.headers.get(FEED_INDEX_HEADER), hex=True)
            next_header = resp.headers.get(FEED_INDEX_NEXT_HEADER)
            next_index = decode_index(next_header, hex=True) if next_header else (
                0 if index == NO_INDEX else index + 1
            )
            payload = await resp.read()
            return FeedUpdate(payload=payload, index=index, next_index=next_index)

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
