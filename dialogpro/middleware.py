import time
import uuid
from collections.abc import Mapping

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from .logging_config import logger


REDACTED = "***REDACTED***"

_SENSITIVE_HEADER_NAMES = {
    "authorization",
    "proxy-authorization",
    "x-api-key",
    "x-session-id",
    "cookie",
    "set-cookie",
}


def sanitize_headers_for_log(headers: Mapping[str, str]) -> dict[str, str]:
    """
    Copy of `headers` with credentials masked: known secret headers plus any
    header whose name mentions key/token/secret/auth/cookie/session.
    """
    sanitized: dict[str, str] = {}
    for name, value in headers.items():
        lower_name = name.lower()
        if lower_name in _SENSITIVE_HEADER_NAMES or any(
            marker in lower_name
            for marker in ("key", "token", "secret", "auth", "cookie", "session")
        ):
            sanitized[name] = REDACTED
        else:
            sanitized[name] = value
    return sanitized


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = uuid.uuid4().hex
        request.state.request_id = request_id

        logger.debug(
            "request %s start %s %s headers=%s",
            request_id,
            request.method,
            request.url.path,
            sanitize_headers_for_log(request.headers),
        )
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.exception(
                "request %s failed %s %s duration_ms=%d",
                request_id,
                request.method,
                request.url.path,
                duration_ms,
            )
            raise

        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "request %s %s %s status=%s duration_ms=%d",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        response.headers["x-request-id"] = request_id
        return response


__all__ = ["REDACTED", "sanitize_headers_for_log", "RequestLoggingMiddleware"]
