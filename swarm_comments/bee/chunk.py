"""
swarm-comments -- Chunk and single-owner-chunk codec.

Layouts::

    content addressed chunk (CAC):  span(8, little endian) || payload(1..4096)
    CAC address:                    keccak256(span || bmt_root(payload))

    single owner chunk (SOC):       identifier(32) || signature(65) || CAC
    SOC address:                    keccak256(identifier || owner(20))
    SOC signature:                  sign(keccak256(identifier || CAC address))

    feed identifier at index i:     keccak256(topic(32) || i(8, big endian))

The BMT root pads the payload to 4096 bytes, splits it into 32 byte segments
and reduces pairs with keccak256 until one hash remains.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from web3 import Web3

from swarm_comments.bee.keys import TOPIC_LENGTH
from swarm_comments.messages.index_codec import to_bytes as index_to_bytes

logger = logging.getLogger(__name__)

SPAN_LENGTH = 8
SEGMENT_SIZE = 32
MIN_PAYLOAD_SIZE = 1
MAX_PAYLOAD_SIZE = 4096
IDENTIFIER_LENGTH = 32
SIGNATURE_LENGTH = 65
SOC_HEADER_LENGTH = IDENTIFIER_LENGTH + SIGNATURE_LENGTH


class ChunkError(ValueError):
    """Raised for malformed or unverifiable chunk data."""


class PayloadSizeError(ChunkError):
    """Raised when a payload falls outside the single chunk limits."""


def keccak(data: bytes) -> bytes:
    return bytes(Web3.keccak(data))


def make_span(length: int) -> bytes:
    return struct.pack("<Q", length)


def bmt_root_hash(payload: bytes) -> bytes:
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise PayloadSizeError(
            f"payload size {len(payload)} exceeds maximum chunk payload size {MAX_PAYLOAD_SIZE}"
        )
    level = [
        payload.ljust(MAX_PAYLOAD_SIZE, b"\x00")[i:i + SEGMENT_SIZE]
        for i in range(0, MAX_PAYLOAD_SIZE, SEGMENT_SIZE)
    ]
    while len(level) > 1:
        level = [keccak(level[i] + level[i + 1]) for i in range(0, len(level), 2)]
    return level[0]


def calculate_chunk_address(chunk_data: bytes) -> bytes:
    span = chunk_data[:SPAN_LENGTH]
    payload = chunk_data[SPAN_LENGTH:]
    return keccak(span + bmt_root_hash(payload))


@dataclass(frozen=True)
class ContentAddressedChunk:
    data: bytes
    address: bytes

    @property
    def span(self) -> bytes:
        return self.data[:SPAN_LENGTH]

    @property
    def payload(self) -> bytes:
        return self.data[SPAN_LENGTH:]


def make_content_addressed_chunk(payload: bytes | str) -> ContentAddressedChunk:
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    if not MIN_PAYLOAD_SIZE <= len(payload) <= MAX_PAYLOAD_SIZE:
        raise PayloadSizeError(
            f"payload size {len(payload)} exceeds limits [{MIN_PAYLOAD_SIZE}, {MAX_PAYLOAD_SIZE}]"
        )
    data = make_span(len(payload)) + payload
    return ContentAddressedChunk(data=data, address=calculate_chunk_address(data))


def make_feed_identifier(topic: bytes, index: int) -> bytes:
    if len(topic) != TOPIC_LENGTH:
        raise ChunkError(f"topic must be {TOPIC_LENGTH} bytes, got {len(topic)}")
    return keccak(topic + index_to_bytes(index))


def owner_bytes(address: str) -> bytes:
    return bytes.fromhex(address[2:] if address.startswith("0x") else address)


def make_soc_address(identifier: bytes, owner: str) -> bytes:
    return keccak(identifier + owner_bytes(owner))


@dataclass(frozen=True)
class SingleOwnerChunk:
    identifier: bytes
    signature: bytes
    owner: str
    chunk: ContentAddressedChunk

    @property
    def data(self) -> bytes:
        return self.identifier + self.signature + self.chunk.data

    @property
    def address(self) -> bytes:
        return make_soc_address(self.identifier, self.owner)

    @property
    def payload(self) -> bytes:
        return self.chunk.payload


def _soc_digest(identifier: bytes, chunk_address: bytes):
    return encode_defunct(primitive=keccak(identifier + chunk_address))


def make_single_owner_chunk(
    chunk: ContentAddressedChunk,
    identifier: bytes,
    signer: LocalAccount,
) -> SingleOwnerChunk:
    signed = signer.sign_message(_soc_digest(identifier, chunk.address))
    return SingleOwnerChunk(
        identifier=identifier,
        signature=bytes(signed.signature),
        owner=signer.address.lower(),
        chunk=chunk,
    )


def parse_single_owner_chunk(data: bytes, expected_owner: str) -> SingleOwnerChunk:
    """Decode raw SOC bytes and check the signature against *expected_owner*.

    Raises:
        ChunkError: if the data is truncated or signed by someone else.
    """
    if len(data) < SOC_HEADER_LENGTH + SPAN_LENGTH + MIN_PAYLOAD_SIZE:
        raise ChunkError(f"single owner chunk too short: {len(data)} bytes")

    identifier = data[:IDENTIFIER_LENGTH]
    signature = data[IDENTIFIER_LENGTH:SOC_HEADER_LENGTH]
    cac_data = data[SOC_HEADER_LENGTH:]

    span_length = struct.unpack("<Q", cac_data[:SPAN_LENGTH])[0]
    if span_length > MAX_PAYLOAD_SIZE:
        raise ChunkError(f"unsupported span {span_length}")
    cac_data = cac_data[:SPAN_LENGTH + span_length]

    chunk = ContentAddressedChunk(data=cac_data, address=calculate_chunk_address(cac_data))
    try:
        owner = Account.recover_message(_soc_digest(identifier, chunk.address), signature=signature)
    except Exception as exc:
        raise ChunkError(f"cannot recover chunk owner: {exc}") from exc

    if owner.lower() != expected_owner.lower():
        raise ChunkError(f"chunk owner mismatch: expected {expected_owner}, got {owner}")

    return SingleOwnerChunk(identifier=identifier, signature=signature, owner=owner.lower(), chunk=chunk)
