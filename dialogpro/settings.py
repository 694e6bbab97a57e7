import re
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


CHAT_POSITIONS = ("bottom-right", "bottom-left", "top-right", "top-left")
LOGGING_LEVELS = ("error", "warning", "info", "debug")

DEFAULT_PRIMARY_COLOR = "#007bff"
_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")


class Settings(BaseSettings):
    """
    Relay configuration.

    Built once at process start and handed to every component explicitly;
    instances are frozen so a request can never observe a half-updated
    configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # Upstream chat-completion API
    api_endpoint: str = Field(
        "",
        alias="API_ENDPOINT",
        description="Chat API URL that receives POSTed user messages",
    )
    api_token: str = Field(
        "",
        alias="API_TOKEN",
        description="Bearer token sent to the chat API",
    )
    upstream_timeout: float = Field(15.0, alias="UPSTREAM_TIMEOUT")
    probe_timeout: float = Field(5.0, alias="PROBE_TIMEOUT")

    # Per-session token budget
    token_limit: int = Field(8500, alias="TOKEN_LIMIT", ge=0)

    # Widget appearance
    chat_position: Literal["bottom-right", "bottom-left", "top-right", "top-left"] = Field(
        "bottom-right", alias="CHAT_POSITION"
    )
    chat_width: int = Field(20, alias="CHAT_WIDTH", description="Widget width in percent (10-100)")
    primary_color: str = Field(DEFAULT_PRIMARY_COLOR, alias="PRIMARY_COLOR")
    font_family: str = Field("Arial, sans-serif", alias="FONT_FAMILY")
    font_size: int = Field(14, alias="FONT_SIZE", ge=1)
    welcome_message: str = Field(
        "Hello! How can I help you today?", alias="WELCOME_MESSAGE"
    )

    # Logging
    logging_level: Literal["error", "warning", "info", "debug"] = Field(
        "error",
        alias="LOGGING_LEVEL",
        description="Application log level: error, warning, info or debug",
    )
    log_timezone: str | None = Field(
        default=None,
        alias="LOG_TIMEZONE",
        description="Timezone name for log timestamps, e.g. 'Europe/Berlin'. Defaults to system local time.",
    )

    # Storage
    redis_url: str = Field(
        "redis://localhost:6379/0",
        alias="REDIS_URL",
        description="Redis connection URL used for the response cache and history",
    )
    cache_ttl: int = Field(3600, alias="CACHE_TTL", ge=1)
    history_ttl: int = Field(86400, alias="HISTORY_TTL", ge=1)
    session_ttl: int = Field(86400, alias="SESSION_TTL", ge=1)
    session_backend: Literal["cookie", "redis"] = Field(
        "cookie",
        alias="SESSION_BACKEND",
        description="Where session id and token count live: signed cookies or Redis",
    )

    # Secrets
    secret_key: str = Field(
        "please-change-me",
        alias="SECRET_KEY",
        description="Key used to sign session cookies and anti-forgery nonces; override in production",
    )
    admin_token: str = Field(
        "",
        alias="ADMIN_TOKEN",
        description="Expected token after base64 decoding the admin Authorization header",
    )

    @field_validator("chat_width", mode="before")
    @classmethod
    def _clamp_chat_width(cls, value):
        try:
            width = int(value)
        except (TypeError, ValueError):
            return 20
        return min(100, max(10, width))

    @field_validator("primary_color", mode="before")
    @classmethod
    def _sanitize_color(cls, value):
        if isinstance(value, str) and _HEX_COLOR_RE.match(value.strip()):
            return value.strip()
        return DEFAULT_PRIMARY_COLOR

    @field_validator("chat_position", mode="before")
    @classmethod
    def _normalize_position(cls, value):
        if isinstance(value, str) and value.strip().lower() in CHAT_POSITIONS:
            return value.strip().lower()
        return "bottom-right"

    @field_validator("logging_level", mode="before")
    @classmethod
    def _normalize_logging_level(cls, value):
        if isinstance(value, str) and value.strip().lower() in LOGGING_LEVELS:
            return value.strip().lower()
        return "error"

    @field_validator("api_endpoint", "api_token", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @property
    def api_configured(self) -> bool:
        return bool(self.api_endpoint and self.api_token)


__all__ = ["Settings", "CHAT_POSITIONS", "LOGGING_LEVELS", "DEFAULT_PRIMARY_COLOR"]
