"""Topic hashing and topic-derived feed keys.

Comment feeds are "graffiti" feeds: the signing key is a pure function of
the public topic, so every participant writes through the same key and the
same owner address.  The reaction feed lives under a second topic derived
from the comment topic.
"""

from __future__ import annotations

import re

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

TOPIC_LENGTH = 32
REACTION_TOPIC_SUFFIX = b"reactions"

_TOPIC_HEX_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


def topic_to_bytes(topic: str) -> bytes:
    """Hash a human readable topic into 32 bytes.

    A string that already is 64 hex characters is taken as a raw topic.
    """
    if _TOPIC_HEX_RE.match(topic):
        return bytes.fromhex(topic[2:] if topic.startswith("0x") else topic)
    return bytes(Web3.keccak(text=topic))


def topic_hex(topic: str) -> str:
    return topic_to_bytes(topic).hex()


def feed_signer_from_topic(topic: str) -> LocalAccount:
    """Shared signer for *topic*: ``keccak256(topic_bytes)`` as private key."""
    return Account.from_key(bytes(Web3.keccak(topic_to_bytes(topic))))


def reaction_feed_topic(topic: str) -> bytes:
    """Topic of the reaction feed that belongs to the comment feed *topic*."""
    return bytes(Web3.keccak(topic_to_bytes(topic) + REACTION_TOPIC_SUFFIX))
