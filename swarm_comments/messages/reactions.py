"""Reaction state merge.

A reaction is a :class:`Message` of type ``reaction`` whose ``message`` is the
reaction body (usually an emoji) and whose ``target_message_id`` names the
comment it reacts to.  One author holds at most one copy of a given reaction
body on a given target: sending the same reaction again toggles it off.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from swarm_comments.messages.schemas import Message, MessageType

logger = logging.getLogger(__name__)


def _same_reaction(a: Message, b: Message) -> bool:
    return (
        a.target_message_id == b.target_message_id
        and a.address.lower() == b.address.lower()
        and a.message == b.message
    )


def update_reactions(
    prior_state: Optional[Iterable[Message]],
    new_reaction: Message,
) -> list[Message]:
    """Fold *new_reaction* into *prior_state* and return the new full state.

    The prior list is never mutated.

    Raises:
        ValueError: if *new_reaction* is not a reaction or has no target.
    """
    if new_reaction.type is not MessageType.REACTION:
        raise ValueError(f"expected a reaction, got {new_reaction.type.value}")
    if not new_reaction.target_message_id:
        raise ValueError("reaction without targetMessageId")

    state = list(prior_state or [])
    for position, existing in enumerate(state):
        if _same_reaction(existing, new_reaction):
            logger.debug(
                "Toggling off reaction %r on %s by %s",
                new_reaction.message,
                new_reaction.target_message_id,
                new_reaction.address,
            )
            return state[:position] + state[position + 1:]

    state.append(new_reaction)
    return state
