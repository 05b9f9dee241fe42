"""Repository for the member, message, voice and interaction tables."""

from __future__ import annotations

import logging
from datetime import date, datetime

import asyncpg

logger = logging.getLogger(__name__)

# Defaults for members first seen through a message; joins start riskier.
NEW_MEMBER_CHURN_RISK = 0
JOINED_MEMBER_CHURN_RISK = 30


class AnalyticsRepository:
    """Pure SQL write operations for collector facts.

    Counters use ``INSERT ... ON CONFLICT DO UPDATE`` so repeated facts
    increment instead of duplicating rows.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    # ==================== Messages ====================

    async def increment_message_count(
        self, server_id: str, channel_id: str, channel_name: str, day: date
    ) -> None:
        """Increment (or create) the per-channel daily message counter."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO messages_daily (server_id, channel_id, channel_name, date, message_count)
                VALUES ($1, $2, $3, $4, 1)
                ON CONFLICT (server_id, channel_id, date)
                DO UPDATE SET
                    message_count = messages_daily.message_count + 1,
                    channel_name  = EXCLUDED.channel_name
                """,
                server_id,
                channel_id,
                channel_name,
                day,
            )

    async def record_member_message(
        self,
        server_id: str,
        member_id: str,
        username: str,
        avatar: str | None,
        active_at: datetime,
    ) -> None:
        """Bump a member's message total and refresh their profile."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO members
                    (server_id, discord_id, username, avatar, last_active_at,
                     total_messages, churn_risk)
                VALUES ($1, $2, $3, $4, $5, 1, $6)
                ON CONFLICT (server_id, discord_id)
                DO UPDATE SET
                    username       = EXCLUDED.username,
                    avatar         = EXCLUDED.avatar,
                    last_active_at = EXCLUDED.last_active_at,
                    total_messages = members.total_messages + 1
                """,
                server_id,
                member_id,
                username,
                avatar,
                active_at,
                NEW_MEMBER_CHURN_RISK,
            )

    # ==================== Membership ====================

    async def upsert_joined_member(
        self,
        server_id: str,
        member_id: str,
        username: str,
        avatar: str | None,
        joined_at: datetime,
        active_at: datetime,
    ) -> None:
        """Create or reactivate a member who joined the server."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO members
                    (server_id, discord_id, username, avatar, joined_at, last_active_at,
                     total_messages, churn_risk, segment, is_active)
                VALUES ($1, $2, $3, $4, $5, $6, 0, $7, 'new', true)
                ON CONFLICT (server_id, discord_id)
                DO UPDATE SET
                    username       = EXCLUDED.username,
                    avatar         = EXCLUDED.avatar,
                    joined_at      = EXCLUDED.joined_at,
                    last_active_at = EXCLUDED.last_active_at,
                    is_active      = true
                """,
                server_id,
                member_id,
                username,
                avatar,
                joined_at,
                active_at,
                JOINED_MEMBER_CHURN_RISK,
            )

    async def mark_member_inactive(self, server_id: str, member_id: str) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                "UPDATE members SET is_active = false WHERE server_id = $1 AND discord_id = $2",
                server_id,
                member_id,
            )

    async def record_member_event(
        self, server_id: str, member_id: str, event_type: str, occurred_at: datetime
    ) -> None:
        """Append a join/leave row to member_events."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO member_events (server_id, member_discord_id, event_type, event_date)
                VALUES ($1, $2, $3, $4)
                """,
                server_id,
                member_id,
                event_type,
                occurred_at,
            )

    # ==================== Voice ====================

    async def record_voice_session(
        self,
        server_id: str,
        member_id: str,
        channel_id: str,
        channel_name: str,
        started_at: datetime,
        ended_at: datetime,
        duration_minutes: int,
    ) -> None:
        """Insert a closed voice session and add its minutes to the member total.

        Both writes share one transaction.
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    """
                    INSERT INTO voice_sessions
                        (server_id, member_discord_id, channel_id, channel_name,
                         started_at, ended_at, duration_minutes)
                    VALUES ($1, $2, $3, $4, $5, $6, $7)
                    """,
                    server_id,
                    member_id,
                    channel_id,
                    channel_name,
                    started_at,
                    ended_at,
                    duration_minutes,
                )
                await conn.execute(
                    """
                    UPDATE members
                    SET total_voice_minutes = COALESCE(total_voice_minutes, 0) + $3,
                        last_active_at      = GREATEST(COALESCE(last_active_at, $4), $4)
                    WHERE server_id = $1 AND discord_id = $2
                    """,
                    server_id,
                    member_id,
                    duration_minutes,
                    ended_at,
                )

    # ==================== Interactions ====================

    async def record_interaction(
        self,
        server_id: str,
        source_member_id: str,
        target_member_id: str,
        interaction_type: str,
        channel_id: str,
        day: date,
    ) -> None:
        """Increment (or create) the daily counter for a directed edge."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO member_interactions
                    (server_id, source_member_id, target_member_id,
                     interaction_type, channel_id, interaction_date, count)
                VALUES ($1, $2, $3, $4, $5, $6, 1)
                ON CONFLICT (server_id, source_member_id, target_member_id,
                             interaction_type, channel_id, interaction_date)
                DO UPDATE SET count = member_interactions.count + 1
                """,
                server_id,
                source_member_id,
                target_member_id,
                interaction_type,
                channel_id,
                day,
            )
