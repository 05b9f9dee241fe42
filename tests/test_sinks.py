"""Tests for payload serialization and the sink bindings."""

from __future__ import annotations

import json
from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import httpx
import pytest

from conftest import T0
from pulse.sinks import (
    DatabaseSink,
    HttpIngestSink,
    encode_payload,
    fact_to_payload,
    sign_payload,
    verify_signature,
)
from pulse.sinks.http import SIGNATURE_HEADER, TIMESTAMP_HEADER
from shared.models import (
    InteractionEdge,
    MemberJoinFact,
    MemberLeaveFact,
    MessageFact,
    VoiceSessionRecord,
)

MESSAGE = MessageFact(
    server_id="100",
    timestamp=T0.isoformat(),
    channel_id="500",
    channel_name="general",
    author_id="1",
    author_username="alice",
    mentioned_user_ids=("2", "3"),
    replied_to_user_id="4",
)

VOICE = VoiceSessionRecord(
    server_id="100",
    member_id="1",
    channel_id="600",
    channel_name="voice-a",
    started_at=T0,
    ended_at=T0 + timedelta(minutes=5),
    duration_minutes=5,
)

EDGE = InteractionEdge(
    server_id="100",
    source_member_id="1",
    target_member_id="2",
    kind="mention",
    channel_id="500",
    occurred_at=T0.isoformat(),
)


class TestPayload:
    def test_message_payload(self) -> None:
        payload = fact_to_payload(MESSAGE)

        assert payload["type"] == "message_created"
        assert payload["server_id"] == "100"
        assert payload["timestamp"] == T0.isoformat()
        assert payload["data"]["mentioned_user_ids"] == ["2", "3"]
        assert payload["data"]["replied_to_user_id"] == "4"
        assert "server_id" not in payload["data"]

    def test_voice_payload_uses_session_start(self) -> None:
        payload = fact_to_payload(VOICE)

        assert payload["type"] == "voice_session"
        assert payload["timestamp"] == T0.isoformat()
        assert payload["data"]["duration_minutes"] == 5
        assert payload["data"]["ended_at"] == (T0 + timedelta(minutes=5)).isoformat()

    def test_encoding_is_canonical(self) -> None:
        body = encode_payload({"b": 1, "a": [1, 2]})
        assert body == b'{"a":[1,2],"b":1}'


class TestSignature:
    def test_round_trip(self) -> None:
        body = encode_payload(fact_to_payload(EDGE))
        signature = sign_payload("s3cret", body)

        assert signature.startswith("sha256=")
        assert verify_signature("s3cret", body, signature)
        assert not verify_signature("other", body, signature)
        assert not verify_signature("s3cret", body + b" ", signature)


class TestHttpIngestSink:
    async def test_posts_signed_payload(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(202)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        sink = HttpIngestSink("https://ingest.example/", "s3cret", client=client)

        assert await sink.deliver(MESSAGE) is True
        await sink.close()

        [request] = seen
        assert str(request.url) == "https://ingest.example/events"
        assert request.headers["content-type"] == "application/json"
        assert request.headers[TIMESTAMP_HEADER].isdigit()
        assert verify_signature("s3cret", request.content, request.headers[SIGNATURE_HEADER])
        assert json.loads(request.content)["type"] == "message_created"

    async def test_rejected_response(self) -> None:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(401, text="bad signature"))
        )
        sink = HttpIngestSink("https://ingest.example", "s3cret", client=client)

        assert await sink.deliver(VOICE) is False

    async def test_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        sink = HttpIngestSink("https://ingest.example", "s3cret", client=client)

        assert await sink.deliver(EDGE) is False


@pytest.fixture
def repo() -> MagicMock:
    repo = MagicMock()
    for name in (
        "increment_message_count",
        "record_member_message",
        "upsert_joined_member",
        "mark_member_inactive",
        "record_member_event",
        "record_voice_session",
        "record_interaction",
    ):
        setattr(repo, name, AsyncMock())
    return repo


class TestDatabaseSink:
    async def test_message(self, repo) -> None:
        sink = DatabaseSink(repository=repo)

        assert await sink.deliver(MESSAGE) is True
        repo.increment_message_count.assert_awaited_once_with("100", "500", "general", T0.date())
        repo.record_member_message.assert_awaited_once_with("100", "1", "alice", None, T0)

    async def test_member_join_and_leave(self, repo) -> None:
        sink = DatabaseSink(repository=repo)
        join = MemberJoinFact(
            server_id="100", timestamp=T0.isoformat(), member_id="7", username="bob"
        )
        leave = MemberLeaveFact(server_id="100", timestamp=T0.isoformat(), member_id="7")

        assert await sink.deliver(join) is True
        assert await sink.deliver(leave) is True

        repo.upsert_joined_member.assert_awaited_once_with("100", "7", "bob", None, T0, T0)
        repo.mark_member_inactive.assert_awaited_once_with("100", "7")
        assert [c.args[2] for c in repo.record_member_event.await_args_list] == ["join", "leave"]

    async def test_voice_session(self, repo) -> None:
        sink = DatabaseSink(repository=repo)

        assert await sink.deliver(VOICE) is True
        repo.record_voice_session.assert_awaited_once_with(
            "100", "1", "600", "voice-a", T0, T0 + timedelta(minutes=5), 5
        )

    async def test_interaction_aggregated_per_day(self, repo) -> None:
        sink = DatabaseSink(repository=repo)

        assert await sink.deliver(EDGE) is True
        repo.record_interaction.assert_awaited_once_with(
            "100", "1", "2", "mention", "500", date(2025, 3, 1)
        )

    async def test_database_error_is_reported(self, repo) -> None:
        repo.record_voice_session.side_effect = asyncpg.InterfaceError("connection is closed")
        sink = DatabaseSink(repository=repo)

        assert await sink.deliver(VOICE) is False

    async def test_requires_start(self) -> None:
        sink = DatabaseSink()
        with pytest.raises(RuntimeError):
            _ = sink.repo

    async def test_health_follows_database(self, repo) -> None:
        db = MagicMock(check_health=AsyncMock(side_effect=[True, False]))
        sink = DatabaseSink(db=db, repository=repo)

        assert await sink.check_health() is True
        assert await sink.check_health() is False

    async def test_unstarted_sink_is_unhealthy(self) -> None:
        assert await DatabaseSink().check_health() is False
        assert await HttpIngestSink("https://ingest.example", "s3cret").check_health() is True
