"""
swarm-comments -- Author signatures.

The feed key is shared by everyone who knows the topic, so chunk ownership
says nothing about who wrote a comment.  Authorship is carried by a second
signature inside the payload:

    digest = keccak256("\\x19Ethereum Signed Message:\\n32" || keccak256(json))

where ``json`` is the compact JSON of ``{"username", "address",
"timestamp", "message"}`` in that key order.  Validation recovers the signer
from the digest and compares it with the claimed ``address``.

Private keys are never logged.
"""

from __future__ import annotations

import json
import logging

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from swarm_comments.messages.schemas import Message

logger = logging.getLogger(__name__)


class SignatureMismatchError(ValueError):
    """Raised when a private key does not belong to the configured address."""


def remove_0x(value: str) -> str:
    return (value[2:] if value.startswith("0x") else value).lower()


def signed_fields(username: str, address: str, timestamp: int, message: str) -> bytes:
    """Canonical bytes covered by the author signature."""
    payload = {
        "username": username,
        "address": address,
        "timestamp": timestamp,
        "message": message,
    }
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _signable(data: bytes):
    return encode_defunct(primitive=Web3.keccak(data))


def address_from_key(private_key: str) -> str:
    """Lowercase hex address (no ``0x``) for *private_key*."""
    return remove_0x(Account.from_key(private_key).address)


def sign_message(
    private_key: str,
    username: str,
    address: str,
    timestamp: int,
    message: str,
) -> str:
    """Sign the canonical fields and return the hex signature (no ``0x``).

    Raises:
        SignatureMismatchError: if *address* was not derived from *private_key*.
    """
    signer_address = address_from_key(private_key)
    if signer_address != remove_0x(address):
        raise SignatureMismatchError(
            "The provided address does not match the address derived from the private key"
        )
    signed = Account.sign_message(
        _signable(signed_fields(username, address, timestamp, message)),
        private_key=private_key,
    )
    return remove_0x(signed.signature.hex())


def recover_address(message: Message) -> str:
    """Recover the signer address of *message* (lowercase, no ``0x``)."""
    if not message.signature:
        raise ValueError("message carries no signature")
    data = signed_fields(message.username, message.address, message.timestamp, message.message)
    recovered = Account.recover_message(
        _signable(data),
        signature=bytes.fromhex(remove_0x(message.signature)),
    )
    return remove_0x(recovered)


def validate_user_signature(message: Message) -> bool:
    """Return True when *message* is authentic (or a legacy payload).

    Never raises: malformed signatures count as invalid.
    """
    if message.is_legacy:
        logger.debug("Legacy user comment detected, skipping signature validation")
        return True

    try:
        return recover_address(message) == remove_0x(message.address)
    except Exception as exc:
        logger.warning("Error in validate_user_signature: %s", exc)
        return False
