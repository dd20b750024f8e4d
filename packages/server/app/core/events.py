"""
Per-user notification channel over Redis Pub/Sub, streamed as SSE.

Features:
- One persisted Event row per recipient
- Capped per-user replay buffer in Redis
- Cursor-based replay from the buffer via Last-Event-ID
- Keepalive heartbeat every 30 seconds
- JWT revocation checking during streaming
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncGenerator
from uuid import UUID

import structlog
from fastapi import Request
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import is_jwt_revoked
from app.core.redis import get_redis
from app.models.event import Event

log = structlog.get_logger()

# Configuration
REDIS_PUBSUB_CHANNEL = "td:events:pubsub"
REDIS_BUFFER_KEY_PREFIX = "td:sse:buffer:"
BUFFER_SIZE = 500
BUFFER_TTL_SECONDS = 86400
HEARTBEAT_INTERVAL = 30  # seconds
REVOCATION_CHECK_EVERY = 10  # poll iterations


def _serialize(event: Event) -> dict[str, Any]:
    return {
        "sequence_id": event.sequence_id,
        "user_id": str(event.user_id),
        "type": event.type,
        "actor_id": str(event.actor_id) if event.actor_id else None,
        "payload": event.payload,
        "timestamp": event.timestamp.isoformat(),
    }


async def notify_user(
    session: AsyncSession,
    user_id: UUID,
    event_type: str,
    payload: dict[str, Any],
    actor_id: UUID | None = None,
) -> Event:
    """
    Persist an event for one recipient, buffer it in Redis and publish it.

    This is the single entry point for pushing notifications. A Redis
    outage is logged and does not fail the caller; the persisted row
    remains the record of the notification.
    """
    new_event = Event(
        user_id=user_id,
        type=event_type,
        actor_id=actor_id,
        payload=payload,
    )
    session.add(new_event)
    await session.commit()
    await session.refresh(new_event)

    event_json = json.dumps(_serialize(new_event))

    try:
        redis = await get_redis()
        buffer_key = f"{REDIS_BUFFER_KEY_PREFIX}{user_id}"
        async with redis.pipeline() as pipe:
            pipe.lpush(buffer_key, event_json)
            pipe.ltrim(buffer_key, 0, BUFFER_SIZE - 1)
            pipe.expire(buffer_key, BUFFER_TTL_SECONDS)
            await pipe.execute()
        await redis.publish(REDIS_PUBSUB_CHANNEL, event_json)
    except (RedisError, OSError):
        log.warning(
            "events.publish_failed",
            user_id=str(user_id),
            event_type=event_type,
            sequence_id=new_event.sequence_id,
            exc_info=True,
        )

    return new_event


async def notify_users(
    session: AsyncSession,
    user_ids: list[UUID],
    event_type: str,
    payload: dict[str, Any],
    actor_id: UUID | None = None,
) -> None:
    """Fan a notification out to several recipients, skipping the actor."""
    seen: set[UUID] = set()
    for uid in user_ids:
        if uid == actor_id or uid in seen:
            continue
        seen.add(uid)
        await notify_user(session, uid, event_type, payload, actor_id=actor_id)


async def _replay_from_buffer(user_id: UUID, last_event_id: int) -> list[dict]:
    """Events in the user's buffer newer than ``last_event_id``, oldest first."""
    redis = await get_redis()
    raw_events = await redis.lrange(f"{REDIS_BUFFER_KEY_PREFIX}{user_id}", 0, -1)
    buffered = [json.loads(e) for e in raw_events]
    buffered.sort(key=lambda x: x["sequence_id"])
    return [e for e in buffered if e["sequence_id"] > last_event_id]


def _to_sse(event_data: dict) -> dict:
    return {
        "event": event_data["type"],
        "id": str(event_data["sequence_id"]),
        "data": json.dumps(event_data),
    }


async def event_generator(
    request: Request,
    user_id: UUID,
    last_event_id: int | None = None,
    jti: str | None = None,
) -> AsyncGenerator[dict | str, None]:
    """
    SSE generator for one user:
    - Replay from the Redis buffer when a cursor is given
    - Live events from Pub/Sub addressed to this user
    - 30s keepalive heartbeat
    - Stops when the session token is revoked or the client disconnects
    """
    redis = await get_redis()
    pubsub = redis.pubsub()
    await pubsub.subscribe(REDIS_PUBSUB_CHANNEL)

    max_seen_id = last_event_id if last_event_id is not None else -1
    target = str(user_id)

    try:
        if last_event_id is not None and last_event_id >= 0:
            for event_data in await _replay_from_buffer(user_id, last_event_id):
                max_seen_id = max(max_seen_id, event_data["sequence_id"])
                yield _to_sse(event_data)

        revocation_check_counter = 0
        idle_seconds = 0
        while True:
            if await request.is_disconnected():
                break

            revocation_check_counter += 1
            if revocation_check_counter >= REVOCATION_CHECK_EVERY and jti:
                revocation_check_counter = 0
                if await is_jwt_revoked(jti):
                    yield {
                        "event": "session.revoked",
                        "data": json.dumps({"reason": "credential_revoked"}),
                    }
                    break

            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)

            if message is None:
                idle_seconds += 1
                if idle_seconds >= HEARTBEAT_INTERVAL:
                    idle_seconds = 0
                    yield ": heartbeat\n\n"
                continue
            idle_seconds = 0

            if message["type"] != "message":
                continue
            event_data = json.loads(message["data"])
            if event_data["user_id"] == target and event_data["sequence_id"] > max_seen_id:
                max_seen_id = event_data["sequence_id"]
                yield _to_sse(event_data)

    except asyncio.CancelledError:
        log.info("events.stream_cancelled", user_id=target)
        raise
    finally:
        await pubsub.unsubscribe(REDIS_PUBSUB_CHANNEL)
        await pubsub.aclose()
