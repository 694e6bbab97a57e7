from fastapi import APIRouter, Depends

from .auth import require_admin_token
from .cache import ResponseCache
from .deps import get_cache, get_settings, get_upstream
from .models import CacheClearResponse, ConnectionStatus
from .settings import Settings
from .upstream import UpstreamClient


router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_token)],
)


@router.get("/status", response_model=ConnectionStatus)
async def get_upstream_status(
    settings: Settings = Depends(get_settings),
    upstream: UpstreamClient = Depends(get_upstream),
) -> ConnectionStatus:
    """
    Probe the chat API's /status endpoint.
    """
    connected = await upstream.check_connection()
    return ConnectionStatus(connected=connected, configured=settings.api_configured)


@router.post("/cache/clear", response_model=CacheClearResponse)
async def clear_response_cache(
    cache: ResponseCache = Depends(get_cache),
) -> CacheClearResponse:
    cleared = await cache.invalidate_all()
    return CacheClearResponse(cleared=cleared)


__all__ = ["router"]
