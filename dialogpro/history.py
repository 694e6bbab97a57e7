import json
from typing import List

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from .logging_config import logger
from .models import MessageExchange


HISTORY_KEY_TEMPLATE = "dialogpro:history:{session_id}"
MAX_HISTORY_ENTRIES = 50
DEFAULT_HISTORY_TTL = 86400


class HistoryStore:
    """
    Per-session list of relayed exchanges.

    Entries are pushed to the head of a Redis list and trimmed to the newest
    `max_entries`, so the oldest exchange is the one evicted. History is
    best-effort: storage failures are logged and never fail a request.
    """

    def __init__(
        self,
        redis: Redis,
        *,
        ttl_seconds: int = DEFAULT_HISTORY_TTL,
        max_entries: int = MAX_HISTORY_ENTRIES,
    ) -> None:
        self._redis = redis
        self._ttl = ttl_seconds
        self._max_entries = max_entries

    @staticmethod
    def _key(session_id: str) -> str:
        return HISTORY_KEY_TEMPLATE.format(session_id=session_id)

    async def append(self, exchange: MessageExchange) -> None:
        key = self._key(exchange.session_id)
        try:
            await self._redis.lpush(key, exchange.model_dump_json())
            await self._redis.ltrim(key, 0, self._max_entries - 1)
            await self._redis.expire(key, self._ttl)
        except RedisError as exc:
            logger.warning(
                "Failed to save history for session %s: %s", exchange.session_id, exc
            )

    async def read(self, session_id: str) -> List[MessageExchange]:
        """
        Oldest-first list of exchanges; empty when absent, expired or
        unreadable.
        """
        if not session_id:
            return []
        try:
            raw_entries = await self._redis.lrange(self._key(session_id), 0, -1)
        except RedisError as exc:
            logger.warning("Failed to read history for session %s: %s", session_id, exc)
            return []

        exchanges: List[MessageExchange] = []
        for raw in reversed(raw_entries or []):
            try:
                exchanges.append(MessageExchange.model_validate(json.loads(raw)))
            except (json.JSONDecodeError, ValidationError):
                continue
        return exchanges


__all__ = ["HISTORY_KEY_TEMPLATE", "MAX_HISTORY_ENTRIES", "DEFAULT_HISTORY_TTL", "HistoryStore"]
