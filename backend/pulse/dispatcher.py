"""Turn gateway events into facts and hand each one to the sink."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from shared.models import Fact

from .interactions import extract_interactions, resolve_replied_user
from .normalizer import is_bot, normalize_member_join, normalize_member_leave, normalize_message
from .sinks import FactSink
from .voice_sessions import Transition, VoiceSessionTracker, channel_ref, transition

logger = logging.getLogger(__name__)


@dataclass
class DeliveryStats:
    """Running delivery counters, exposed on the health server."""

    delivered: int = 0
    failed: int = 0
    by_type: Counter = field(default_factory=Counter)

    def as_dict(self) -> dict[str, Any]:
        return {
            "delivered": self.delivered,
            "failed": self.failed,
            "by_type": dict(self.by_type),
        }


class FactDispatcher:
    """Event handlers shared by the collector cog.

    Voice state is applied to the tracker before the first ``await`` so the
    open/close decision for a member is never split by a suspension point.
    """

    def __init__(self, sink: FactSink, tracker: VoiceSessionTracker | None = None) -> None:
        self.sink = sink
        self.tracker = tracker or VoiceSessionTracker()
        self.stats = DeliveryStats()

    async def deliver(self, fact: Fact) -> bool:
        """Hand one fact to the sink. Never raises."""
        try:
            ok = await self.sink.deliver(fact)
        except Exception as e:
            logger.exception(f"Sink {self.sink.name} raised while delivering {fact.type}: {e}")
            ok = False

        if ok:
            self.stats.delivered += 1
            self.stats.by_type[fact.type] += 1
        else:
            self.stats.failed += 1
        return ok

    async def deliver_all(self, facts: list[Fact]) -> int:
        """Deliver facts one by one; returns how many succeeded."""
        delivered = 0
        for fact in facts:
            if await self.deliver(fact):
                delivered += 1
        return delivered

    # ==================== Messages ====================

    async def handle_message(self, message: Any) -> list[Fact]:
        if is_bot(message.author) or message.guild is None:
            return []

        replied_user = None
        if message.reference is not None:
            replied_user = await resolve_replied_user(message)

        fact = normalize_message(message, replied_user)
        if fact is None:
            return []

        edges = extract_interactions(fact, message.mentions, replied_user)
        for edge in edges:
            logger.debug(
                f"{edge.kind}: {edge.source_member_id} -> {edge.target_member_id} "
                f"in {edge.channel_id}"
            )

        logger.info(
            f"[{message.guild.name}/#{fact.channel_name}] {fact.author_username}: "
            f"{fact.content_length} chars, {len(edges)} interaction(s)"
        )

        facts: list[Fact] = [fact, *edges]
        await self.deliver_all(facts)
        return facts

    # ==================== Membership ====================

    async def handle_member_join(self, member: Any) -> list[Fact]:
        fact = normalize_member_join(member)
        if fact is None:
            return []
        logger.info(f"[{member.guild.name}] {fact.username} joined the server")
        await self.deliver(fact)
        return [fact]

    async def handle_member_remove(self, member: Any) -> list[Fact]:
        fact = normalize_member_leave(member)
        if fact is None:
            return []
        logger.info(f"[{member.guild.name}] {fact.username} left the server")
        await self.deliver(fact)
        return [fact]

    # ==================== Voice ====================

    async def handle_voice_state_update(self, member: Any, before: Any, after: Any) -> list[Fact]:
        if member is None or is_bot(member) or getattr(member, "guild", None) is None:
            return []

        server_id = str(member.guild.id)
        member_id = str(member.id)
        old, new = channel_ref(before), channel_ref(after)

        records = self.tracker.observe(server_id, member_id, old, new)

        kind = transition(old, new)
        if kind is Transition.JOIN:
            logger.info(f"[{member.guild.name}] {member.name} joined voice #{new.name}")
        elif kind is Transition.LEAVE:
            minutes = f" ({records[0].duration_minutes} min)" if records else ""
            logger.info(f"[{member.guild.name}] {member.name} left voice #{old.name}{minutes}")
        elif kind is Transition.MOVE:
            logger.info(
                f"[{member.guild.name}] {member.name} moved voice #{old.name} -> #{new.name}"
            )

        await self.deliver_all(list(records))
        return list(records)

    # ==================== Lifecycle ====================

    def log_orphaned_sessions(self) -> None:
        """Report sessions that will be lost because the process is stopping."""
        orphaned = self.tracker.orphaned()
        if orphaned:
            logger.warning(
                f"{len(orphaned)} open voice session(s) will not be recorded: "
                + ", ".join(f"{s.member_id}@{s.server_id}#{s.channel_name}" for s in orphaned)
            )
