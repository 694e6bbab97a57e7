"""
Widget sessions and the per-session token budget.

A session is two values, the identifier and the running token count,
stored through a `SessionBackend`. Signed cookies are the default backend;
`RedisSessionBackend` keeps the same two values server-side instead.
"""

from __future__ import annotations

import re
import time
import uuid
from typing import Callable, Mapping, Optional, Protocol

from redis.asyncio import Redis
from starlette.responses import Response

from .errors import Ok, Result, quota_exceeded
from .logging_config import logger
from .models import Session
from .settings import Settings
from .signing import sign, unsign


SESSION_KEY = "session"
TOKEN_KEY = "tokens"
COOKIE_PREFIX = "dialogpro_"
REDIS_SESSION_KEY_TEMPLATE = "dialogpro:session:{client_id}:{key}"

_UUID4_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$"
)


def is_valid_session_id(value: Optional[str]) -> bool:
    return bool(value) and bool(_UUID4_RE.match(value))


def _parse_count(raw: Optional[str]) -> int:
    try:
        count = int(raw) if raw is not None else 0
    except ValueError:
        return 0
    return max(0, count)


class SessionBackend(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, *, ttl_seconds: int) -> None: ...

    async def expire(self, key: str) -> None: ...


class CookieSessionBackend:
    """
    Stores each key in its own HMAC-signed cookie named dialogpro_<key>.
    The token count signature also covers the current session id, so a count
    signed for one session is rejected under another.

    Values written during the request are visible to later reads in the
    same request.
    """

    def __init__(
        self,
        cookies: Mapping[str, str],
        response: Response,
        *,
        secret: str,
        secure: bool,
    ) -> None:
        self._cookies = cookies
        self._response = response
        self._secret = secret
        self._secure = secure
        self._pending: dict[str, Optional[str]] = {}

    @staticmethod
    def cookie_name(key: str) -> str:
        return f"{COOKIE_PREFIX}{key}"

    async def _namespace(self, key: str) -> str:
        name = self.cookie_name(key)
        if key == TOKEN_KEY:
            return f"{name}:{await self.get(SESSION_KEY) or ''}"
        return name

    async def get(self, key: str) -> Optional[str]:
        if key in self._pending:
            return self._pending[key]
        name = self.cookie_name(key)
        value = unsign(self._secret, await self._namespace(key), self._cookies.get(name))
        if value is None and name in self._cookies:
            logger.info("Ignoring cookie %s with a bad signature", name)
        return value

    async def set(self, key: str, value: str, *, ttl_seconds: int) -> None:
        name = self.cookie_name(key)
        namespace = await self._namespace(key)
        self._pending[key] = value
        self._response.set_cookie(
            name,
            sign(self._secret, namespace, value),
            max_age=ttl_seconds,
            path="/",
            secure=self._secure,
            httponly=True,
            samesite="strict",
        )

    async def expire(self, key: str) -> None:
        self._pending[key] = None
        self._response.delete_cookie(
            self.cookie_name(key),
            path="/",
            secure=self._secure,
            httponly=True,
            samesite="strict",
        )


class RedisSessionBackend:
    """
    Server-side storage keyed by an opaque client id (itself carried in a
    cookie by the caller).
    """

    def __init__(self, redis: Redis, client_id: str) -> None:
        self._redis = redis
        self._client_id = client_id

    def _key(self, key: str) -> str:
        return REDIS_SESSION_KEY_TEMPLATE.format(client_id=self._client_id, key=key)

    async def get(self, key: str) -> Optional[str]:
        return await self._redis.get(self._key(key))

    async def set(self, key: str, value: str, *, ttl_seconds: int) -> None:
        await self._redis.set(self._key(key), value, ex=ttl_seconds)

    async def expire(self, key: str) -> None:
        await self._redis.delete(self._key(key))


class SessionStore:
    """
    Loads, charges and clears one caller's session.

    The token limit is read from `settings` on every check, never cached
    at load time.
    """

    def __init__(
        self,
        backend: SessionBackend,
        settings: Settings,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._backend = backend
        self._settings = settings
        self._clock = clock
        self._session: Optional[Session] = None

    @property
    def session_id(self) -> str:
        return self._session.id if self._session else ""

    @property
    def token_count(self) -> int:
        return self._session.token_count if self._session else 0

    async def load(self) -> Session:
        raw_id = await self._backend.get(SESSION_KEY)
        if not is_valid_session_id(raw_id):
            if raw_id:
                logger.warning("Discarding session with malformed id %r", raw_id[:64])
            return await self._create()

        count = _parse_count(await self._backend.get(TOKEN_KEY))
        self._session = Session(id=raw_id, token_count=count)
        return self._session

    async def _create(self) -> Session:
        self._session = Session(id=str(uuid.uuid4()), token_count=0, created_at=self._clock())
        await self._persist()
        logger.debug("Created session %s", self._session.id)
        return self._session

    async def _persist(self) -> None:
        ttl = self._settings.session_ttl
        await self._backend.set(SESSION_KEY, self._session.id, ttl_seconds=ttl)
        await self._backend.set(TOKEN_KEY, str(self._session.token_count), ttl_seconds=ttl)

    async def update_token_count(self, delta: int) -> Result[int]:
        if self._session is None:
            raise RuntimeError("session must be loaded before charging tokens")

        limit = self._settings.token_limit
        new_count = self._session.token_count + delta
        if new_count > limit:
            logger.info(
                "Token limit exceeded for session %s: %d + %d > %d",
                self._session.id,
                self._session.token_count,
                delta,
                limit,
            )
            return quota_exceeded(limit)

        self._session = self._session.model_copy(update={"token_count": new_count})
        await self._persist()
        return Ok(new_count)

    def is_valid(self) -> bool:
        return bool(self.session_id) and self.token_count <= self._settings.token_limit

    async def clear(self) -> None:
        await self._backend.expire(SESSION_KEY)
        await self._backend.expire(TOKEN_KEY)
        self._session = None


__all__ = [
    "SESSION_KEY",
    "TOKEN_KEY",
    "COOKIE_PREFIX",
    "REDIS_SESSION_KEY_TEMPLATE",
    "is_valid_session_id",
    "SessionBackend",
    "CookieSessionBackend",
    "RedisSessionBackend",
    "SessionStore",
]
