from __future__ import annotations

import redis.asyncio as redis

from tokenbot.src.config import settings

_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    """Return the shared Redis client, connecting lazily."""
    global _client
    if _client is None:
        _client = redis.from_url(settings.redis_url, decode_responses=True)
    return _client


async def close_redis() -> None:
    """Close the shared Redis client if it was ever opened."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def redis_in_use() -> bool:
    return _client is not None
