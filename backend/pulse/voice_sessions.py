"""Voice session lifecycle tracking.

Discord reports voice activity as a pair of independent snapshots (the
member's voice state before and after a change). ``VoiceSessionTracker``
turns those pairs into closed ``VoiceSessionRecord`` facts:

    none -> C      open a session in C
    C    -> none   close the session, emit a record for C
    C    -> C      nothing (mute/deafen/stream toggles land here)
    C    -> D      emit a record for C and open D at the same instant

``observe`` never awaits, so under asyncio the read-decide-mutate on the
table cannot interleave with another event for the same member.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from shared.models import VoiceSessionRecord

logger = logging.getLogger(__name__)

SessionKey = tuple[str, str]


@dataclass(frozen=True)
class ChannelRef:
    """The voice channel a member occupies."""

    id: str
    name: str


@dataclass
class VoiceSession:
    """An open session, owned by the table until it is closed."""

    server_id: str
    member_id: str
    channel_id: str
    channel_name: str
    started_at: datetime

    @property
    def key(self) -> SessionKey:
        return (self.server_id, self.member_id)

    def close(self, ended_at: datetime) -> VoiceSessionRecord:
        return VoiceSessionRecord(
            server_id=self.server_id,
            member_id=self.member_id,
            channel_id=self.channel_id,
            channel_name=self.channel_name,
            started_at=self.started_at,
            ended_at=ended_at,
            duration_minutes=duration_minutes(self.started_at, ended_at),
        )


class Transition(Enum):
    JOIN = "join"
    LEAVE = "leave"
    MOVE = "move"
    NOOP = "noop"


def transition(before: ChannelRef | None, after: ChannelRef | None) -> Transition:
    """Classify a (before, after) pair of channel observations."""
    if before is None and after is None:
        return Transition.NOOP
    if before is None:
        return Transition.JOIN
    if after is None:
        return Transition.LEAVE
    if before.id == after.id:
        return Transition.NOOP
    return Transition.MOVE


def duration_minutes(started_at: datetime, ended_at: datetime) -> int:
    """Whole minutes between two instants, halves rounded up, never negative."""
    seconds = (ended_at - started_at).total_seconds()
    return max(0, math.floor(seconds / 60 + 0.5))


def channel_ref(voice_state: Any) -> ChannelRef | None:
    """Extract the occupied channel from a discord.VoiceState (or None)."""
    channel = getattr(voice_state, "channel", None) if voice_state is not None else None
    if channel is None:
        return None
    return ChannelRef(id=str(channel.id), name=getattr(channel, "name", None) or str(channel.id))


class VoiceSessionTable:
    """In-memory table of open sessions, at most one per (server, member)."""

    def __init__(self) -> None:
        self._sessions: dict[SessionKey, VoiceSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, key: object) -> bool:
        return key in self._sessions

    def __iter__(self) -> Iterator[VoiceSession]:
        return iter(list(self._sessions.values()))

    def get(self, server_id: str, member_id: str) -> VoiceSession | None:
        return self._sessions.get((server_id, member_id))

    def open(
        self, server_id: str, member_id: str, channel: ChannelRef, started_at: datetime
    ) -> VoiceSession:
        """Open (or replace) the session for a key."""
        session = VoiceSession(
            server_id=server_id,
            member_id=member_id,
            channel_id=channel.id,
            channel_name=channel.name,
            started_at=started_at,
        )
        self._sessions[session.key] = session
        return session

    def pop(self, server_id: str, member_id: str) -> VoiceSession | None:
        return self._sessions.pop((server_id, member_id), None)


class VoiceSessionTracker:
    """State machine converting voice-state deltas into session records."""

    def __init__(
        self,
        table: VoiceSessionTable | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.table = table if table is not None else VoiceSessionTable()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def observe(
        self,
        server_id: str,
        member_id: str,
        before: ChannelRef | None,
        after: ChannelRef | None,
        now: datetime | None = None,
    ) -> list[VoiceSessionRecord]:
        """Apply one observation and return the records it closed."""
        now = now or self._clock()
        kind = transition(before, after)

        if kind is Transition.NOOP:
            return []

        records: list[VoiceSessionRecord] = []
        if kind is Transition.JOIN:
            existing = self.table.get(server_id, member_id)
            if existing is not None:
                # A join without a prior leave means we missed the leave; the
                # old start time can't be trusted, so it is discarded.
                logger.debug(
                    f"Discarding stale voice session for {member_id} in {server_id} "
                    f"(#{existing.channel_name})"
                )
        else:
            session = self.table.pop(server_id, member_id)
            if session is None:
                logger.debug(
                    f"No open voice session for {member_id} in {server_id}; "
                    f"{kind.value} from #{before.name if before else '?'} not recorded"
                )
            else:
                records.append(session.close(now))

        # JOIN and MOVE leave the member in a channel
        if after is not None:
            self.table.open(server_id, member_id, after, now)

        return records

    def orphaned(self) -> list[VoiceSession]:
        """Sessions still open; these are lost if the process stops now."""
        return list(self.table)
