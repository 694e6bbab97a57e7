import base64
import binascii
import hmac
import time
from typing import Optional

from fastapi import Depends, Header

from .deps import get_settings
from .errors import http_error, unauthorized
from .settings import Settings
from .signing import sign, unsign


NONCE_NAMESPACE = "dialogpro_message_nonce"
NONCE_LIFETIME_SECONDS = 12 * 3600


def issue_nonce(settings: Settings, session_id: str, *, now: Optional[float] = None) -> str:
    """
    Anti-forgery token bound to the caller's session id.
    Format: "<issued_at>.<hmac>".
    """
    issued_at = int(now if now is not None else time.time())
    return sign(settings.secret_key, f"{NONCE_NAMESPACE}:{session_id}", str(issued_at))


def verify_nonce(
    settings: Settings,
    nonce: Optional[str],
    session_id: str,
    *,
    now: Optional[float] = None,
) -> bool:
    if not session_id:
        return False
    issued = unsign(settings.secret_key, f"{NONCE_NAMESPACE}:{session_id}", nonce)
    if issued is None:
        return False
    try:
        issued_at = int(issued)
    except ValueError:
        return False
    current = now if now is not None else time.time()
    return 0 <= current - issued_at <= NONCE_LIFETIME_SECONDS


def _decode_token(token: str, expected: str) -> str:
    try:
        decoded = base64.b64decode(token, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        raise unauthorized("Invalid admin token")

    if not hmac.compare_digest(decoded, expected):
        raise unauthorized("Invalid admin token")
    return decoded


async def require_admin_token(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Guard for maintenance endpoints.

    Accepts `Authorization: Bearer <base64(token)>` or
    `X-API-Key: <base64(token)>`; the decoded value must equal ADMIN_TOKEN.
    """
    if not settings.admin_token:
        raise http_error(
            500,
            error="admin_token_not_configured",
            message="Admin token is not configured",
        )

    token_value: str | None = None
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise unauthorized("Invalid Authorization header, expected 'Bearer <token>'")
        token_value = token
    elif x_api_key:
        token_value = x_api_key.strip() or None

    if not token_value:
        raise unauthorized("Missing Authorization or X-API-Key header")

    return _decode_token(token_value, settings.admin_token)


__all__ = ["NONCE_LIFETIME_SECONDS", "issue_nonce", "verify_nonce", "require_admin_token"]
