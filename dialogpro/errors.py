"""
Error kinds and result values used across the relay.

Expected failures (bad input, exhausted quota, upstream trouble) travel as
`Err(RelayError)` values instead of exceptions; exceptions are left for
programming errors and genuinely unexpected conditions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar, Union

from fastapi import HTTPException, status
from pydantic import BaseModel, Field


T = TypeVar("T")

UPSTREAM_USER_MESSAGE = "Error communicating with chat service. Please try again later."


class ErrorKind(str, Enum):
    # client input
    EMPTY_MESSAGE = "empty_message"
    TOO_LONG = "too_long"
    UNSAFE_CONTENT = "unsafe_content"
    # session state
    INVALID_SESSION = "invalid_session"
    QUOTA_EXCEEDED = "quota_exceeded"
    # upstream
    CONFIG_INCOMPLETE = "config_incomplete"
    TRANSPORT_ERROR = "transport_error"
    HTTP_ERROR = "http_error"
    PARSE_ERROR = "parse_error"


UPSTREAM_KINDS = frozenset(
    {
        ErrorKind.CONFIG_INCOMPLETE,
        ErrorKind.TRANSPORT_ERROR,
        ErrorKind.HTTP_ERROR,
        ErrorKind.PARSE_ERROR,
    }
)

_HTTP_STATUS_BY_KIND = {
    ErrorKind.EMPTY_MESSAGE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.TOO_LONG: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNSAFE_CONTENT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_SESSION: status.HTTP_403_FORBIDDEN,
    ErrorKind.QUOTA_EXCEEDED: status.HTTP_403_FORBIDDEN,
    ErrorKind.CONFIG_INCOMPLETE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.TRANSPORT_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.HTTP_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.PARSE_ERROR: status.HTTP_502_BAD_GATEWAY,
}


@dataclass(frozen=True)
class RelayError:
    kind: ErrorKind
    message: str
    # upstream HTTP status, only set for HTTP_ERROR
    status: Optional[int] = None
    # server-side detail (transport message, raw body); never shown to callers
    detail: Optional[str] = None

    @property
    def is_upstream(self) -> bool:
        return self.kind in UPSTREAM_KINDS

    @property
    def public_message(self) -> str:
        """Message safe to show to the end user."""
        if self.is_upstream:
            return UPSTREAM_USER_MESSAGE
        return self.message

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS_BY_KIND[self.kind]


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    error: RelayError


Result = Union[Ok[T], Err]


def empty_message() -> Err:
    return Err(RelayError(ErrorKind.EMPTY_MESSAGE, "Message cannot be empty"))


def too_long(max_length: int) -> Err:
    return Err(
        RelayError(
            ErrorKind.TOO_LONG,
            f"Message exceeds maximum length of {max_length} characters",
        )
    )


def unsafe_content() -> Err:
    return Err(RelayError(ErrorKind.UNSAFE_CONTENT, "Invalid message content"))


def invalid_session() -> Err:
    return Err(RelayError(ErrorKind.INVALID_SESSION, "Invalid session"))


def quota_exceeded(limit: int) -> Err:
    return Err(
        RelayError(
            ErrorKind.QUOTA_EXCEEDED,
            "Token limit exceeded",
            detail=f"token_limit={limit}",
        )
    )


def config_incomplete() -> Err:
    return Err(RelayError(ErrorKind.CONFIG_INCOMPLETE, "API configuration is incomplete"))


def transport_error(detail: str) -> Err:
    return Err(
        RelayError(ErrorKind.TRANSPORT_ERROR, "Upstream transport error", detail=detail)
    )


def upstream_http_error(status_code: int, body: str) -> Err:
    return Err(
        RelayError(
            ErrorKind.HTTP_ERROR,
            f"API returned error code: {status_code}",
            status=status_code,
            detail=body,
        )
    )


def parse_error(detail: str) -> Err:
    return Err(
        RelayError(ErrorKind.PARSE_ERROR, "Invalid JSON response from API", detail=detail)
    )


class ErrorResponse(BaseModel):
    """
    Error payload for the admin endpoints:
    {"error": "unauthorized", "message": "...", "code": 401, "details": {...}}
    """

    error: str = Field(..., description="Machine-readable error type")
    message: str = Field(..., description="Human-readable error message")
    code: int = Field(..., description="HTTP status code for this error")
    details: Optional[Dict[str, Any]] = Field(
        default=None, description="Optional structured error details"
    )


def http_error(
    status_code: int,
    *,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> HTTPException:
    payload = ErrorResponse(
        error=error,
        message=message,
        code=status_code,
        details=details,
    )
    return HTTPException(status_code=status_code, detail=payload.model_dump())


def unauthorized(message: str) -> HTTPException:
    return http_error(status.HTTP_401_UNAUTHORIZED, error="unauthorized", message=message)


__all__ = [
    "ErrorKind",
    "RelayError",
    "Ok",
    "Err",
    "Result",
    "UPSTREAM_KINDS",
    "UPSTREAM_USER_MESSAGE",
    "empty_message",
    "too_long",
    "unsafe_content",
    "invalid_session",
    "quota_exceeded",
    "config_incomplete",
    "transport_error",
    "upstream_http_error",
    "parse_error",
    "ErrorResponse",
    "http_error",
    "unauthorized",
]
