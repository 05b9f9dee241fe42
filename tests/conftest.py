"""Shared fixtures: lightweight stand-ins for discord.py objects."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from pulse.dispatcher import FactDispatcher
from pulse.sinks import FactSink
from pulse.voice_sessions import VoiceSessionTracker

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_user(user_id: int, name: str | None = None, bot: bool = False, avatar: str | None = None):
    return SimpleNamespace(
        id=user_id,
        name=name or f"user{user_id}",
        bot=bot,
        avatar=SimpleNamespace(key=avatar) if avatar else None,
    )


def make_guild(guild_id: int = 100, name: str = "Test Guild"):
    return SimpleNamespace(id=guild_id, name=name)


def make_member(user_id: int, guild=None, bot: bool = False, name: str | None = None):
    member = make_user(user_id, name=name, bot=bot)
    member.guild = guild or make_guild()
    member.joined_at = T0
    return member


def make_channel(channel_id: int, name: str):
    return SimpleNamespace(id=channel_id, name=name)


def voice_state(channel=None):
    return SimpleNamespace(channel=channel)


def make_message(
    author,
    guild=None,
    channel=None,
    mentions=(),
    reference=None,
    content: str = "hello there",
    created_at: datetime = T0,
):
    return SimpleNamespace(
        author=author,
        guild=guild,
        channel=channel or make_channel(500, "general"),
        mentions=list(mentions),
        reference=reference,
        content=content,
        created_at=created_at,
    )


class FakeClock:
    """Deterministic clock for the voice tracker."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingSink(FactSink):
    """Sink that records every fact it is given."""

    name = "recording"

    def __init__(self, fail_types: set[str] | None = None) -> None:
        self.facts: list = []
        self.fail_types = fail_types or set()

    async def deliver(self, fact) -> bool:
        self.facts.append(fact)
        return fact.type not in self.fail_types


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tracker(clock) -> VoiceSessionTracker:
    return VoiceSessionTracker(clock=clock)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def dispatcher(sink, tracker) -> FactDispatcher:
    return FactDispatcher(sink, tracker)


@pytest.fixture
def guild():
    return make_guild()


@pytest.fixture
def failing_sink():
    sink = AsyncMock(spec=FactSink)
    sink.name = "mock"
    return sink
