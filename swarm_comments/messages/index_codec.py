"""
swarm-comments -- Feed index codec.

Feed indexes travel in several textual shapes:

    * decimal strings written into comment payloads (``"12"``),
    * 16 character zero-padded hex from Bee response headers
      (``"000000000000000c"``),
    * ``0x``-prefixed hex (``"0xc"``),
    * plain ``int`` values from callers and checkpoints.

All of them normalise to a Python ``int``.  The reserved value ``-1``
(``NO_INDEX``) means "not yet placed in a stream"; the 8-byte all-ones feed
index ``ffffffffffffffff`` decodes to the same sentinel.

Disambiguation rule: a bare string of decimal digits is always decimal.  A
string is hexadecimal when it carries a ``0x`` prefix, when the caller passes
``hex=True`` (Bee response headers), or when it is exactly 16 characters and
contains hex letters.
"""

from __future__ import annotations

import re
import struct
from typing import Union

NO_INDEX: int = -1
FEED_INDEX_LENGTH: int = 8
FEED_INDEX_HEX_LENGTH: int = FEED_INDEX_LENGTH * 2
MAX_FEED_INDEX: int = 2 ** 64 - 2
MINUS_ONE_HEX: str = "f" * FEED_INDEX_HEX_LENGTH

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")
_DEC_RE = re.compile(r"^-?[0-9]+$")

IndexLike = Union[int, str, bytes, None]


class InvalidIndexError(ValueError):
    """Raised when a value cannot be interpreted as a feed index."""


def is_absent(value: IndexLike) -> bool:
    """Return True if *value* encodes the reserved "absent" sentinel."""
    try:
        return decode_index(value) == NO_INDEX
    except InvalidIndexError:
        return False


def decode_index(value: IndexLike, hex: bool = False) -> int:
    """Normalise *value* into an integer feed index (``-1`` for absent).

    ``None`` and the empty string decode to ``NO_INDEX``.  Pass ``hex=True``
    for text known to be hexadecimal, such as the Bee ``swarm-feed-index``
    header, where ``"0000000000000010"`` means 16 and not 10.

    Raises:
        InvalidIndexError: for malformed text or out-of-range numbers.
    """
    if value is None:
        return NO_INDEX

    if isinstance(value, bool):
        raise InvalidIndexError(f"boolean is not a feed index: {value!r}")

    if isinstance(value, int):
        return _check_range(value, value)

    if isinstance(value, (bytes, bytearray)):
        if len(value) != FEED_INDEX_LENGTH:
            raise InvalidIndexError(
                f"binary feed index must be {FEED_INDEX_LENGTH} bytes, got {len(value)}"
            )
        raw = struct.unpack(">Q", bytes(value))[0]
        return _from_unsigned(raw, value)

    if not isinstance(value, str):
        raise InvalidIndexError(f"unsupported index type: {type(value).__name__}")

    text = value.strip()
    if not text:
        return NO_INDEX

    if text[:2].lower() == "0x":
        digits = text[2:]
        if not digits or not _HEX_RE.match(digits):
            raise InvalidIndexError(f"malformed hex index: {value!r}")
        return _from_unsigned(int(digits, 16), value)

    if hex:
        if not _HEX_RE.match(text):
            raise InvalidIndexError(f"malformed hex index: {value!r}")
        return _from_unsigned(int(text, 16), value)

    if _DEC_RE.match(text):
        return _check_range(int(text), value)

    # all-digit 16 character strings were taken as decimal above
    if len(text) == FEED_INDEX_HEX_LENGTH and _HEX_RE.match(text):
        return _from_unsigned(int(text, 16), value)

    raise InvalidIndexError(f"malformed index: {value!r}")


def encode_decimal(index: int) -> str:
    """Encode *index* the way comment payloads store it."""
    return str(_check_range(index, index))


def encode_hex(index: int) -> str:
    """Encode *index* as the 16 character hex form used by Bee headers."""
    return to_bytes(index).hex()


def to_bytes(index: int) -> bytes:
    """Big-endian 8-byte representation; ``-1`` maps to all ones."""
    index = _check_range(index, index)
    if index == NO_INDEX:
        return b"\xff" * FEED_INDEX_LENGTH
    return struct.pack(">Q", index)


def _from_unsigned(raw: int, original: object) -> int:
    if raw == 2 ** 64 - 1:
        return NO_INDEX
    return _check_range(raw, original)


def _check_range(index: int, original: object) -> int:
    if index < NO_INDEX or index > MAX_FEED_INDEX:
        raise InvalidIndexError(f"index out of range: {original!r}")
    return index
