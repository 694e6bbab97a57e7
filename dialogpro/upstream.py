import time
from typing import Any, Callable, Dict

import httpx

from .errors import (
    Ok,
    Result,
    config_incomplete,
    parse_error,
    transport_error,
    upstream_http_error,
)
from .logging_config import logger
from .settings import Settings


SESSION_HEADER = "X-Session-ID"
STATUS_PATH = "/status"

# Upstream bodies are truncated to this many characters in logs.
_LOG_BODY_LIMIT = 2000


def upstream_text(response: Dict[str, Any]) -> str:
    """The reply text carried in an upstream JSON body ("" when absent)."""
    value = response.get("response")
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


class UpstreamClient:
    """
    Talks to the configured chat API.

    `send` never raises for network, HTTP or decoding trouble; each is
    logged and returned as its own error kind.
    """

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._client = client
        self._clock = clock

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._settings.api_token}"}

    async def send(self, message: str, session_id: str) -> Result[Dict[str, Any]]:
        endpoint = self._settings.api_endpoint
        if not self._settings.api_configured:
            logger.error("Upstream not configured: api_endpoint and api_token are required")
            return config_incomplete()

        headers = {
            **self._auth_headers(),
            "Content-Type": "application/json",
            SESSION_HEADER: session_id,
        }
        body = {"message": message, "timestamp": int(self._clock())}

        try:
            resp = await self._client.post(
                endpoint,
                headers=headers,
                json=body,
                timeout=self._settings.upstream_timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "Upstream transport error for %s (session_id=%s): %r", endpoint, session_id, exc
            )
            return transport_error(repr(exc))

        if resp.status_code != 200:
            logger.warning(
                "Upstream HTTP error %s for %s (session_id=%s); response=%s",
                resp.status_code,
                endpoint,
                session_id,
                resp.text[:_LOG_BODY_LIMIT],
            )
            return upstream_http_error(resp.status_code, resp.text)

        try:
            data = resp.json()
        except ValueError as exc:
            logger.warning(
                "Upstream returned invalid JSON for %s (session_id=%s): %s; body=%s",
                endpoint,
                session_id,
                exc,
                resp.text[:_LOG_BODY_LIMIT],
            )
            return parse_error(str(exc))

        if not isinstance(data, dict):
            logger.warning(
                "Upstream returned JSON %s instead of an object for %s",
                type(data).__name__,
                endpoint,
            )
            return parse_error(f"expected a JSON object, got {type(data).__name__}")

        logger.debug("Upstream replied for session_id=%s", session_id)
        return Ok(data)

    async def check_connection(self) -> bool:
        """
        GET <endpoint>/status with the short probe timeout. True only for a
        completed request answered with 200; every failure is logged and
        reported as False.
        """
        endpoint = self._settings.api_endpoint
        if not endpoint:
            return False
        url = endpoint.rstrip("/") + STATUS_PATH
        try:
            resp = await self._client.get(
                url,
                headers=self._auth_headers(),
                timeout=self._settings.probe_timeout,
            )
        except Exception as exc:
            logger.warning("Upstream connection check failed for %s: %r", url, exc)
            return False
        if resp.status_code != 200:
            logger.warning("Upstream connection check for %s returned %s", url, resp.status_code)
            return False
        return True


__all__ = ["SESSION_HEADER", "STATUS_PATH", "upstream_text", "UpstreamClient"]
