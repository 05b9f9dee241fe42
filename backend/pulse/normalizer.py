"""Map raw discord.py events to flat fact records.

Nothing here touches the network or keeps state. Bot accounts and events
outside a guild are dropped; everything else is passed through without
validation.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from shared.models import MemberJoinFact, MemberLeaveFact, MessageFact


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def avatar_key(user: Any) -> str | None:
    """Return the avatar hash of a user, or None for the default avatar."""
    avatar = getattr(user, "avatar", None)
    if avatar is None:
        return None
    return getattr(avatar, "key", str(avatar))


def is_bot(user: Any) -> bool:
    return bool(getattr(user, "bot", False))


def is_counted_target(user: Any, author_id: str) -> bool:
    """True when a mention or reply target counts as a member interaction."""
    return not is_bot(user) and str(user.id) != author_id


def normalize_message(message: Any, replied_user: Any = None) -> MessageFact | None:
    """Normalize a guild message. Returns None for bot authors and DMs."""
    if is_bot(message.author) or message.guild is None:
        return None

    author_id = str(message.author.id)
    channel = message.channel
    created_at = getattr(message, "created_at", None) or utcnow()

    return MessageFact(
        server_id=str(message.guild.id),
        timestamp=_iso(created_at),
        channel_id=str(channel.id),
        channel_name=getattr(channel, "name", None) or str(channel.id),
        author_id=author_id,
        author_username=message.author.name,
        author_avatar=avatar_key(message.author),
        mentioned_user_ids=tuple(
            str(user.id) for user in message.mentions if is_counted_target(user, author_id)
        ),
        replied_to_user_id=(
            str(replied_user.id)
            if replied_user is not None and is_counted_target(replied_user, author_id)
            else None
        ),
        content_length=len(message.content or ""),
    )


def normalize_member_join(member: Any, now: datetime | None = None) -> MemberJoinFact | None:
    if is_bot(member) or getattr(member, "guild", None) is None:
        return None

    now = now or utcnow()
    return MemberJoinFact(
        server_id=str(member.guild.id),
        timestamp=_iso(now),
        member_id=str(member.id),
        username=member.name,
        avatar=avatar_key(member),
        joined_at=_iso(getattr(member, "joined_at", None)) or _iso(now),
    )


def normalize_member_leave(member: Any, now: datetime | None = None) -> MemberLeaveFact | None:
    if is_bot(member) or getattr(member, "guild", None) is None:
        return None

    return MemberLeaveFact(
        server_id=str(member.guild.id),
        timestamp=_iso(now or utcnow()),
        member_id=str(member.id),
        username=getattr(member, "name", None),
    )
