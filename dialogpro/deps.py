import uuid

import httpx
from fastapi import Depends, Request, Response
from redis.asyncio import Redis

from .cache import ResponseCache
from .history import HistoryStore
from .relay import RelayPipeline
from .session import CookieSessionBackend, RedisSessionBackend, SessionBackend, SessionStore
from .settings import Settings
from .upstream import UpstreamClient


CLIENT_KEY = "client"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_redis(request: Request) -> Redis:
    """
    Shared Redis client created by the app factory. Tests override this
    dependency with an in-memory fake.
    """
    return request.app.state.redis


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_cache(
    redis: Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> ResponseCache:
    return ResponseCache(redis, ttl_seconds=settings.cache_ttl)


def get_history(
    redis: Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> HistoryStore:
    return HistoryStore(redis, ttl_seconds=settings.history_ttl)


def get_upstream(
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> UpstreamClient:
    return UpstreamClient(settings, client)


async def _session_backend(
    request: Request,
    response: Response,
    settings: Settings,
    redis: Redis,
) -> SessionBackend:
    cookies = CookieSessionBackend(
        request.cookies,
        response,
        secret=settings.secret_key,
        secure=request.url.scheme == "https",
    )
    if settings.session_backend != "redis":
        return cookies

    # Only an opaque client id travels in the cookie; session data stays in Redis.
    client_id = await cookies.get(CLIENT_KEY)
    if not client_id:
        client_id = uuid.uuid4().hex
        await cookies.set(CLIENT_KEY, client_id, ttl_seconds=settings.session_ttl)
    return RedisSessionBackend(redis, client_id)


async def get_session_store(
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
    redis: Redis = Depends(get_redis),
) -> SessionStore:
    backend = await _session_backend(request, response, settings, redis)
    store = SessionStore(backend, settings)
    await store.load()
    return store


def get_pipeline(
    session: SessionStore = Depends(get_session_store),
    cache: ResponseCache = Depends(get_cache),
    upstream: UpstreamClient = Depends(get_upstream),
    history: HistoryStore = Depends(get_history),
) -> RelayPipeline:
    return RelayPipeline(session=session, cache=cache, upstream=upstream, history=history)


__all__ = [
    "get_settings",
    "get_redis",
    "get_http_client",
    "get_cache",
    "get_history",
    "get_upstream",
    "get_session_store",
    "get_pipeline",
]
