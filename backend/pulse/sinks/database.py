"""Direct-to-PostgreSQL delivery, used when no ingestion endpoint is available."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

import asyncpg

from shared.database import DatabaseManager
from shared.migrations import MigrationRunner
from shared.models import (
    Fact,
    InteractionEdge,
    MemberJoinFact,
    MemberLeaveFact,
    MessageFact,
    VoiceSessionRecord,
)
from shared.repositories import AnalyticsRepository

from .base import FactSink

logger = logging.getLogger(__name__)

DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


def _parse(ts: str) -> datetime:
    return datetime.fromisoformat(ts)


class DatabaseSink(FactSink):
    """Write facts straight into the analytics tables."""

    name = "database"

    def __init__(
        self,
        db: DatabaseManager | None = None,
        repository: AnalyticsRepository | None = None,
        run_migrations: bool = True,
    ) -> None:
        self.db = db
        self.run_migrations = run_migrations
        self._repo = repository

    @property
    def repo(self) -> AnalyticsRepository:
        if self._repo is None:
            raise RuntimeError("DatabaseSink not started")
        return self._repo

    async def start(self) -> None:
        if self.db is None or self._repo is not None:
            return
        await self.db.connect()
        if self.run_migrations:
            await MigrationRunner(self.db.pool).run_pending()
        self._repo = AnalyticsRepository(self.db.pool)

    async def close(self) -> None:
        if self.db is not None:
            await self.db.close()

    async def check_health(self) -> bool:
        if self.db is None:
            return self._repo is not None
        return await self.db.check_health()

    async def deliver(self, fact: Fact) -> bool:
        try:
            if isinstance(fact, MessageFact):
                await self._message(fact)
            elif isinstance(fact, MemberJoinFact):
                await self._member_join(fact)
            elif isinstance(fact, MemberLeaveFact):
                await self._member_leave(fact)
            elif isinstance(fact, VoiceSessionRecord):
                await self._voice_session(fact)
            elif isinstance(fact, InteractionEdge):
                await self._interaction(fact)
            else:
                logger.warning(f"Unsupported fact type: {type(fact).__name__}")
                return False
        except DB_ERRORS as e:
            logger.error(f"Failed to store {fact.type} for server {fact.server_id}: {e!r}")
            return False
        return True

    async def _message(self, fact: MessageFact) -> None:
        sent_at = _parse(fact.timestamp)
        await self.repo.increment_message_count(
            fact.server_id, fact.channel_id, fact.channel_name, sent_at.date()
        )
        await self.repo.record_member_message(
            fact.server_id, fact.author_id, fact.author_username, fact.author_avatar, sent_at
        )

    async def _member_join(self, fact: MemberJoinFact) -> None:
        occurred_at = _parse(fact.timestamp)
        joined_at = _parse(fact.joined_at) if fact.joined_at else occurred_at
        await self.repo.upsert_joined_member(
            fact.server_id, fact.member_id, fact.username, fact.avatar, joined_at, occurred_at
        )
        await self.repo.record_member_event(fact.server_id, fact.member_id, "join", occurred_at)

    async def _member_leave(self, fact: MemberLeaveFact) -> None:
        await self.repo.mark_member_inactive(fact.server_id, fact.member_id)
        await self.repo.record_member_event(
            fact.server_id, fact.member_id, "leave", _parse(fact.timestamp)
        )

    async def _voice_session(self, fact: VoiceSessionRecord) -> None:
        await self.repo.record_voice_session(
            fact.server_id,
            fact.member_id,
            fact.channel_id,
            fact.channel_name,
            fact.started_at,
            fact.ended_at,
            fact.duration_minutes,
        )

    async def _interaction(self, fact: InteractionEdge) -> None:
        await self.repo.record_interaction(
            fact.server_id,
            fact.source_member_id,
            fact.target_member_id,
            fact.kind,
            fact.channel_id,
            _parse(fact.occurred_at).date(),
        )
