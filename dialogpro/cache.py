import hashlib
from typing import Any, Dict, Optional

from redis.asyncio import Redis

from .logging_config import logger
from .redis_client import redis_delete_prefix, redis_get_json, redis_set_json


CACHE_KEY_PREFIX = "dialogpro:cache:"
DEFAULT_CACHE_TTL = 3600


def cache_key(message: str, session_id: str) -> str:
    # Not a security boundary; md5 only needs to spread keys.
    digest = hashlib.md5((message + session_id).encode("utf-8")).hexdigest()
    return f"{CACHE_KEY_PREFIX}{digest}"


class ResponseCache:
    """
    Upstream responses keyed by (message, session id). Expiry is delegated
    to Redis, so an expired entry is simply a miss.
    """

    def __init__(self, redis: Redis, *, ttl_seconds: int = DEFAULT_CACHE_TTL) -> None:
        self._redis = redis
        self._ttl = ttl_seconds

    async def get(self, message: str, session_id: str) -> Optional[Dict[str, Any]]:
        data = await redis_get_json(self._redis, cache_key(message, session_id))
        if not isinstance(data, dict):
            return None
        return data

    async def put(self, message: str, session_id: str, response: Dict[str, Any]) -> None:
        await redis_set_json(
            self._redis, cache_key(message, session_id), response, ttl_seconds=self._ttl
        )

    async def invalidate_all(self) -> int:
        removed = await redis_delete_prefix(self._redis, CACHE_KEY_PREFIX)
        logger.info("Response cache cleared (%d entries)", removed)
        return removed


__all__ = ["CACHE_KEY_PREFIX", "DEFAULT_CACHE_TTL", "cache_key", "ResponseCache"]
