"""
Tests for the notification channel.

Covers:
- notify_user persists, buffers and publishes
- Redis outages do not fail the caller
- notify_users fan-out skips the actor and duplicates
- Replay from the per-user buffer
- The SSE generator: replay, live filtering, revocation
- GET /events listing
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlmodel import select

from app.core.events import (
    BUFFER_SIZE,
    REDIS_BUFFER_KEY_PREFIX,
    REDIS_PUBSUB_CHANNEL,
    _replay_from_buffer,
    event_generator,
    notify_user,
    notify_users,
)
from app.models.event import Event


class FakePubSub:
    def __init__(self, messages):
        self.messages = list(messages)
        self.subscribed = []
        self.closed = False

    async def subscribe(self, channel):
        self.subscribed.append(channel)

    async def unsubscribe(self, channel):
        self.subscribed.remove(channel)

    async def get_message(self, ignore_subscribe_messages=True, timeout=1.0):
        if self.messages:
            return self.messages.pop(0)
        return None

    async def aclose(self):
        self.closed = True


def _message(user_id, sequence_id, event_type="task_updated"):
    return {
        "type": "message",
        "data": json.dumps({
            "sequence_id": sequence_id,
            "user_id": str(user_id),
            "type": event_type,
            "actor_id": None,
            "payload": {},
            "timestamp": "2026-10-18T12:00:00",
        }),
    }


def _connected_request():
    request = MagicMock()
    request.is_disconnected = AsyncMock(return_value=False)
    return request


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------


class TestNotifyUser:
    @pytest.mark.asyncio
    async def test_persists_buffers_and_publishes(self, db_session, users, fake_redis):
        bob = users["bob"]

        event = await notify_user(
            db_session, bob.id, "task_assigned", {"message": "hi"}, actor_id=users["alice"].id
        )

        assert event.sequence_id is not None
        stored = (await db_session.execute(select(Event))).scalars().all()
        assert [e.sequence_id for e in stored] == [event.sequence_id]

        buffer = fake_redis.lists[f"{REDIS_BUFFER_KEY_PREFIX}{bob.id}"]
        assert json.loads(buffer[0])["payload"] == {"message": "hi"}
        channel, raw = fake_redis.published[0]
        assert channel == REDIS_PUBSUB_CHANNEL
        assert json.loads(raw)["user_id"] == str(bob.id)

    @pytest.mark.asyncio
    async def test_buffer_is_capped(self, db_session, users, fake_redis):
        bob = users["bob"]
        key = f"{REDIS_BUFFER_KEY_PREFIX}{bob.id}"
        fake_redis.lists[key] = ["{}"] * BUFFER_SIZE

        await notify_user(db_session, bob.id, "task_updated", {})

        assert len(fake_redis.lists[key]) == BUFFER_SIZE
        assert fake_redis.ttls[key] > 0

    @pytest.mark.asyncio
    async def test_redis_outage_is_not_fatal(self, db_session, users):
        broken = AsyncMock(side_effect=RedisConnectionError("down"))

        with patch("app.core.events.get_redis", broken):
            event = await notify_user(db_session, users["bob"].id, "task_updated", {})

        assert event.sequence_id is not None
        assert (await db_session.execute(select(Event))).scalars().all()


class TestNotifyUsers:
    @pytest.mark.asyncio
    async def test_skips_actor_and_duplicates(self, db_session, users, fake_redis):
        alice, bob, carol = users["alice"], users["bob"], users["carol"]

        await notify_users(
            db_session, [bob.id, alice.id, bob.id, carol.id], "task_updated", {}, actor_id=alice.id
        )

        recipients = [
            e.user_id for e in (await db_session.execute(select(Event).order_by(Event.sequence_id))).scalars()
        ]
        assert recipients == [bob.id, carol.id]


# ---------------------------------------------------------------------------
# Replay and streaming
# ---------------------------------------------------------------------------


class TestReplay:
    @pytest.mark.asyncio
    async def test_replays_newer_events_oldest_first(self, db_session, users, fake_redis):
        bob = users["bob"]
        sent = [await notify_user(db_session, bob.id, "task_updated", {"n": i}) for i in range(4)]

        replayed = await _replay_from_buffer(bob.id, sent[1].sequence_id)

        assert [e["payload"]["n"] for e in replayed] == [2, 3]

    @pytest.mark.asyncio
    async def test_empty_buffer(self, users, fake_redis):
        assert await _replay_from_buffer(users["bob"].id, 0) == []


class TestEventGenerator:
    @pytest.mark.asyncio
    async def test_replay_then_live_for_this_user_only(self, db_session, users, fake_redis):
        bob, carol = users["bob"], users["carol"]
        first = await notify_user(db_session, bob.id, "task_assigned", {})
        second = await notify_user(db_session, bob.id, "task_updated", {})

        pubsub = FakePubSub([
            _message(carol.id, second.sequence_id + 1),
            _message(bob.id, second.sequence_id),  # already replayed
            _message(bob.id, second.sequence_id + 2, "alert"),
        ])
        fake_redis.pubsub = lambda: pubsub

        gen = event_generator(_connected_request(), bob.id, last_event_id=first.sequence_id)
        replayed = await gen.__anext__()
        live = await gen.__anext__()
        await gen.aclose()

        assert replayed["id"] == str(second.sequence_id)
        assert replayed["event"] == "task_updated"
        assert live["id"] == str(second.sequence_id + 2)
        assert live["event"] == "alert"
        assert pubsub.closed
        assert pubsub.subscribed == []

    @pytest.mark.asyncio
    async def test_stops_when_session_revoked(self, users, fake_redis):
        fake_redis.pubsub = lambda: FakePubSub([])
        await fake_redis.setex("jwt:revoked:old-jti", 60, "1")

        gen = event_generator(_connected_request(), users["bob"].id, jti="old-jti")
        frames = [frame async for frame in gen]

        assert frames[-1]["event"] == "session.revoked"

    @pytest.mark.asyncio
    async def test_stops_on_disconnect(self, users, fake_redis):
        fake_redis.pubsub = lambda: FakePubSub([])
        request = MagicMock()
        request.is_disconnected = AsyncMock(return_value=True)

        frames = [frame async for frame in event_generator(request, users["bob"].id)]

        assert frames == []


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


class TestEventsApi:
    @pytest.mark.asyncio
    async def test_lists_my_events_newest_first(self, client, db_session, users):
        bob = users["bob"]
        older = await notify_user(db_session, bob.id, "task_assigned", {"n": 1})
        newer = await notify_user(db_session, bob.id, "task_updated", {"n": 2})
        await notify_user(db_session, users["carol"].id, "task_updated", {"n": 3})

        resp = await client.get("/api/v1/events")

        assert resp.status_code == 200
        assert [e["sequence_id"] for e in resp.json()] == [newer.sequence_id, older.sequence_id]

    @pytest.mark.asyncio
    async def test_after_cursor(self, client, db_session, users):
        bob = users["bob"]
        older = await notify_user(db_session, bob.id, "task_assigned", {})
        newer = await notify_user(db_session, bob.id, "task_updated", {})

        resp = await client.get("/api/v1/events", params={"after": older.sequence_id})

        assert [e["sequence_id"] for e in resp.json()] == [newer.sequence_id]
