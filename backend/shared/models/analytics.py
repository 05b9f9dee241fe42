"""Fact models emitted by the Discord collector.

Every fact is an immutable value object. ``type`` doubles as the wire
discriminant used by the sinks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, Union

MENTION = "mention"
REPLY = "reply"


@dataclass(frozen=True)
class MessageFact:
    """A guild message posted by a human member."""

    type: ClassVar[str] = "message_created"

    server_id: str
    timestamp: str
    channel_id: str
    channel_name: str
    author_id: str
    author_username: str
    author_avatar: str | None = None
    mentioned_user_ids: tuple[str, ...] = field(default_factory=tuple)
    replied_to_user_id: str | None = None
    content_length: int = 0


@dataclass(frozen=True)
class MemberJoinFact:
    """A member joined a guild."""

    type: ClassVar[str] = "member_join"

    server_id: str
    timestamp: str
    member_id: str
    username: str
    avatar: str | None = None
    joined_at: str | None = None


@dataclass(frozen=True)
class MemberLeaveFact:
    """A member left (or was removed from) a guild."""

    type: ClassVar[str] = "member_leave"

    server_id: str
    timestamp: str
    member_id: str
    username: str | None = None


@dataclass(frozen=True)
class VoiceSessionRecord:
    """A closed voice session segment in a single channel."""

    type: ClassVar[str] = "voice_session"

    server_id: str
    member_id: str
    channel_id: str
    channel_name: str
    started_at: datetime
    ended_at: datetime
    duration_minutes: int

    @property
    def timestamp(self) -> str:
        return self.started_at.isoformat()


@dataclass(frozen=True)
class InteractionEdge:
    """A directed mention/reply edge between two members."""

    type: ClassVar[str] = "member_interaction"

    server_id: str
    source_member_id: str
    target_member_id: str
    kind: str
    channel_id: str
    occurred_at: str

    @property
    def timestamp(self) -> str:
        return self.occurred_at


Fact = Union[MessageFact, MemberJoinFact, MemberLeaveFact, VoiceSessionRecord, InteractionEdge]
