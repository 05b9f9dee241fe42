"""Shared data models for the Pulse collector."""

from .analytics import (
    MENTION,
    REPLY,
    Fact,
    InteractionEdge,
    MemberJoinFact,
    MemberLeaveFact,
    MessageFact,
    VoiceSessionRecord,
)

__all__ = [
    "MENTION",
    "REPLY",
    "Fact",
    "InteractionEdge",
    "MemberJoinFact",
    "MemberLeaveFact",
    "MessageFact",
    "VoiceSessionRecord",
]
