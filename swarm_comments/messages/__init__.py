"""
swarm-comments -- Message model, index codec, signatures and reaction merge.

Usage:
    from swarm_comments.messages import Message, MessageType, validate_user_signature
"""
from __future__ import annotations

from swarm_comments.messages.index_codec import (
    NO_INDEX,
    InvalidIndexError,
    decode_index,
    encode_decimal,
    encode_hex,
    is_absent,
)
from swarm_comments.messages.reactions import update_reactions
from swarm_comments.messages.schemas import (
    Message,
    MessageType,
    ReactionSnapshot,
    generate_message_id,
    order_messages,
)
from swarm_comments.messages.signing import (
    SignatureMismatchError,
    address_from_key,
    sign_message,
    validate_user_signature,
)

__all__ = [
    # Index codec
    "NO_INDEX",
    "InvalidIndexError",
    "decode_index",
    "encode_decimal",
    "encode_hex",
    "is_absent",
    # Schemas
    "Message",
    "MessageType",
    "ReactionSnapshot",
    "generate_message_id",
    "order_messages",
    # Signatures
    "SignatureMismatchError",
    "address_from_key",
    "sign_message",
    "validate_user_signature",
    # Reactions
    "update_reactions",
]
