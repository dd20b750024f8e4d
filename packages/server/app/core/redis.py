"""Redis connection management.

Redis backs the notification channel (Pub/Sub plus per-user replay buffers)
and the JWT revocation list.
"""

from __future__ import annotations

import redis.asyncio as redis

from app.core.config import get_settings

settings = get_settings()

_redis_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    """Get or create the shared Redis client."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
        )
    return _redis_client


async def ping_redis() -> bool:
    """Readiness probe helper. Returns False instead of raising."""
    try:
        client = await get_redis()
        return bool(await client.ping())
    except (redis.RedisError, OSError):
        return False


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
