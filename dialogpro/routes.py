from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from redis.asyncio import Redis

from .admin_routes import router as admin_router
from .chat_routes import router as chat_router
from .logging_config import logger
from .middleware import RequestLoggingMiddleware
from .models import HealthResponse
from .redis_client import create_redis_client
from .settings import Settings
from .widget_routes import router as widget_router


def create_app(
    settings: Optional[Settings] = None,
    *,
    redis: Optional[Redis] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Composition root.

    Settings are resolved once; the Redis and HTTP clients are built from
    them (unless supplied) and shared by every request through `app.state`.
    Clients created here are closed on shutdown; supplied ones are left to
    their owner.
    """
    settings = settings or Settings()
    owns_redis = redis is None
    owns_http = http_client is None
    redis = redis if redis is not None else create_redis_client(settings)
    http_client = (
        http_client
        if http_client is not None
        else httpx.AsyncClient(timeout=settings.upstream_timeout)
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not settings.api_configured:
            logger.warning("API_ENDPOINT / API_TOKEN not set; chat messages will fail")
        yield
        if owns_http:
            await http_client.aclose()
        if owns_redis:
            await redis.aclose()

    app = FastAPI(title="DialogPro Relay", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.redis = redis
    app.state.http_client = http_client

    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse()

    app.include_router(widget_router)
    app.include_router(chat_router)
    app.include_router(admin_router)
    return app


__all__ = ["create_app"]
