"""Mention and reply edges between members."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import discord

from shared.models import MENTION, REPLY, InteractionEdge, MessageFact

from .normalizer import is_counted_target

logger = logging.getLogger(__name__)


def _edge(fact: MessageFact, target: Any, kind: str) -> InteractionEdge | None:
    if not is_counted_target(target, fact.author_id):
        return None
    return InteractionEdge(
        server_id=fact.server_id,
        source_member_id=fact.author_id,
        target_member_id=str(target.id),
        kind=kind,
        channel_id=fact.channel_id,
        occurred_at=fact.timestamp,
    )


def extract_interactions(
    fact: MessageFact,
    mentioned_users: Iterable[Any],
    replied_user: Any = None,
) -> list[InteractionEdge]:
    """Build interaction edges for a message.

    One edge per mention (repeated mentions are kept, aggregation belongs to
    the sink) and at most one reply edge. Bot targets and self-interactions
    are dropped.
    """
    edges: list[InteractionEdge] = []

    for user in mentioned_users:
        edge = _edge(fact, user, MENTION)
        if edge is not None:
            edges.append(edge)

    if replied_user is not None:
        edge = _edge(fact, replied_user, REPLY)
        if edge is not None:
            edges.append(edge)

    return edges


async def resolve_replied_user(message: discord.Message) -> Any:
    """Return the author of the message being replied to, if it can be found.

    Uses the cached referenced message when discord.py already resolved it,
    otherwise fetches it. A deleted or inaccessible original yields None.
    """
    reference = message.reference
    if reference is None or reference.message_id is None:
        return None

    resolved = reference.resolved
    if isinstance(resolved, discord.DeletedReferencedMessage):
        return None
    if resolved is not None:
        return resolved.author

    try:
        original = await message.channel.fetch_message(reference.message_id)
    except discord.HTTPException as e:
        logger.debug(f"Reply target {reference.message_id} unavailable: {e}")
        return None
    return original.author
