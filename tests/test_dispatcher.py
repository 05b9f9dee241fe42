"""Tests for event handling and best-effort delivery."""

from __future__ import annotations

from types import SimpleNamespace

from conftest import (
    RecordingSink,
    make_channel,
    make_guild,
    make_member,
    make_message,
    make_user,
    voice_state,
)
from pulse.dispatcher import FactDispatcher
from pulse.voice_sessions import ChannelRef
from shared.models import InteractionEdge, MessageFact, VoiceSessionRecord

VOICE_A = make_channel(10, "voice-a")
VOICE_B = make_channel(11, "voice-b")


class TestHandleMessage:
    async def test_message_with_mentions_and_reply(self, dispatcher, sink) -> None:
        alice, bob, carol, dave = make_user(1), make_user(2), make_user(3), make_user(4)
        reference = SimpleNamespace(message_id=99, resolved=SimpleNamespace(author=dave))
        message = make_message(
            alice, guild=make_guild(), mentions=[bob, carol], reference=reference
        )

        facts = await dispatcher.handle_message(message)

        assert facts == sink.facts
        assert isinstance(facts[0], MessageFact)
        assert facts[0].replied_to_user_id == "4"
        edges = [f for f in facts if isinstance(f, InteractionEdge)]
        assert [(e.target_member_id, e.kind) for e in edges] == [
            ("2", "mention"),
            ("3", "mention"),
            ("4", "reply"),
        ]

    async def test_self_and_bot_targets_never_reach_sink(self, dispatcher, sink) -> None:
        alice, bob, bot = make_user(1), make_user(2), make_user(9, bot=True)
        reference = SimpleNamespace(message_id=99, resolved=SimpleNamespace(author=bot))
        message = make_message(
            alice, guild=make_guild(), mentions=[alice, bot, bob], reference=reference
        )

        await dispatcher.handle_message(message)

        [fact, edge] = sink.facts
        assert fact.mentioned_user_ids == ("2",)
        assert fact.replied_to_user_id is None
        assert (edge.source_member_id, edge.target_member_id, edge.kind) == ("1", "2", "mention")

    async def test_bot_and_dm_messages_ignored(self, dispatcher, sink) -> None:
        await dispatcher.handle_message(make_message(make_user(1, bot=True), guild=make_guild()))
        await dispatcher.handle_message(make_message(make_user(1), guild=None))
        assert sink.facts == []


class TestHandleMembers:
    async def test_join_and_leave(self, dispatcher, sink) -> None:
        member = make_member(7)
        await dispatcher.handle_member_join(member)
        await dispatcher.handle_member_remove(member)

        assert [f.type for f in sink.facts] == ["member_join", "member_leave"]
        assert dispatcher.stats.delivered == 2


class TestHandleVoiceStateUpdate:
    async def test_join_move_leave(self, dispatcher, sink, clock) -> None:
        member = make_member(7)

        await dispatcher.handle_voice_state_update(member, voice_state(), voice_state(VOICE_A))
        clock.advance(minutes=5)
        await dispatcher.handle_voice_state_update(
            member, voice_state(VOICE_A), voice_state(VOICE_B)
        )
        clock.advance(minutes=3)
        await dispatcher.handle_voice_state_update(member, voice_state(VOICE_B), voice_state())

        assert all(isinstance(f, VoiceSessionRecord) for f in sink.facts)
        assert [(f.channel_name, f.duration_minutes) for f in sink.facts] == [
            ("voice-a", 5),
            ("voice-b", 3),
        ]
        assert len(dispatcher.tracker.table) == 0

    async def test_bot_voice_ignored(self, dispatcher, sink) -> None:
        bot = make_member(8, bot=True)
        await dispatcher.handle_voice_state_update(bot, voice_state(), voice_state(VOICE_A))
        assert len(dispatcher.tracker.table) == 0

    async def test_table_updated_before_delivery(self, tracker) -> None:
        member = make_member(7)
        observed: list[int] = []

        class InspectingSink(RecordingSink):
            async def deliver(self, fact) -> bool:
                observed.append(len(tracker.table))
                return True

        dispatcher = FactDispatcher(InspectingSink(), tracker)
        await dispatcher.handle_voice_state_update(member, voice_state(), voice_state(VOICE_A))
        await dispatcher.handle_voice_state_update(member, voice_state(VOICE_A), voice_state())

        assert observed == [0]


class TestDeliveryFailures:
    async def test_failed_delivery_does_not_stop_later_facts(self, tracker) -> None:
        sink = RecordingSink(fail_types={"message_created"})
        dispatcher = FactDispatcher(sink, tracker)
        message = make_message(make_user(1), guild=make_guild(), mentions=[make_user(2)])

        await dispatcher.handle_message(message)

        assert [f.type for f in sink.facts] == ["message_created", "member_interaction"]
        assert dispatcher.stats.failed == 1
        assert dispatcher.stats.delivered == 1

    async def test_raising_sink_is_contained(self, failing_sink, tracker) -> None:
        failing_sink.deliver.side_effect = [RuntimeError("boom"), True]
        dispatcher = FactDispatcher(failing_sink, tracker)
        message = make_message(make_user(1), guild=make_guild(), mentions=[make_user(2)])

        facts = await dispatcher.handle_message(message)

        assert len(facts) == 2
        assert failing_sink.deliver.await_count == 2
        assert dispatcher.stats.as_dict() == {
            "delivered": 1,
            "failed": 1,
            "by_type": {"member_interaction": 1},
        }

    def test_orphaned_sessions_are_logged(self, dispatcher, caplog) -> None:
        dispatcher.tracker.observe("100", "7", None, None)
        dispatcher.log_orphaned_sessions()
        assert "will not be recorded" not in caplog.text

        dispatcher.tracker.observe("100", "7", None, ChannelRef("10", "voice-a"))
        dispatcher.log_orphaned_sessions()
        assert "1 open voice session(s) will not be recorded" in caplog.text
