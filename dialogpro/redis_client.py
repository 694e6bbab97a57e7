"""
Redis construction and small JSON helpers shared by the cache, history and
server-side session backend.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from redis.asyncio import Redis

from .settings import Settings


def create_redis_client(settings: Settings) -> Redis:
    """
    Build the process-wide Redis client. Connections are opened lazily by
    the driver, so this is safe to call outside an event loop.
    """
    return Redis.from_url(settings.redis_url, decode_responses=True)


async def redis_get_json(redis: Redis, key: str) -> Optional[Any]:
    """
    Load a JSON value; None on missing key or malformed payload.
    """
    raw = await redis.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


async def redis_set_json(
    redis: Redis, key: str, value: Any, *, ttl_seconds: int | None = None
) -> None:
    data = json.dumps(value, ensure_ascii=False)
    if ttl_seconds is not None:
        await redis.set(key, data, ex=ttl_seconds)
    else:
        await redis.set(key, data)


async def redis_delete_prefix(redis: Redis, prefix: str) -> int:
    """
    Delete every key starting with `prefix`; returns how many were removed.
    Uses KEYS, which is fine for the small cache namespace this serves.
    """
    keys = await redis.keys(f"{prefix}*")
    if not keys:
        return 0
    await redis.delete(*keys)
    return len(keys)


__all__ = ["create_redis_client", "redis_get_json", "redis_set_json", "redis_delete_prefix"]
