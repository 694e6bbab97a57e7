from typing import Dict, Optional, Union

from pydantic import BaseModel, Field


class Session(BaseModel):
    """
    Widget session: identifier plus the tokens spent so far.
    """

    id: str = Field(..., description="UUID v4 session identifier")
    token_count: int = Field(default=0, ge=0, description="Tokens consumed in this session")
    created_at: Optional[float] = Field(
        default=None,
        description="Creation timestamp (epoch seconds); unknown for sessions restored from cookies",
    )


class MessageExchange(BaseModel):
    """
    One relayed user/bot turn as kept in the session history.
    """

    session_id: str
    user_text: str
    bot_text: str
    token_count_after: int = Field(..., ge=0)
    timestamp: int = Field(..., description="Epoch seconds")


class FormattedResponse(BaseModel):
    message: str = Field(..., description="Bot reply reduced to safe HTML")
    timestamp: int
    token_count: int
    session_valid: bool


class ChatMessageRequest(BaseModel):
    message: str = Field(default="", description="User message text")
    nonce: str = Field(default="", description="Anti-forgery token issued by /widget/config")


class ErrorData(BaseModel):
    message: str
    error: str


class ChatEnvelope(BaseModel):
    success: bool
    data: Union[FormattedResponse, ErrorData]


class HistoryResponse(BaseModel):
    session_id: str
    messages: list[MessageExchange] = Field(default_factory=list)


class WidgetSettings(BaseModel):
    position: str
    width: int
    primaryColor: str
    fontFamily: str
    fontSize: int
    welcomeMessage: str
    tokenLimit: int


class WidgetConfig(BaseModel):
    messageUrl: str = "/chat/message"
    historyUrl: str = "/chat/history"
    nonce: str
    tokenCount: int
    settings: WidgetSettings
    i18n: Dict[str, str]


class HealthResponse(BaseModel):
    status: str = "ok"


class ConnectionStatus(BaseModel):
    connected: bool
    configured: bool


class CacheClearResponse(BaseModel):
    cleared: int


__all__ = [
    "Session",
    "MessageExchange",
    "FormattedResponse",
    "ChatMessageRequest",
    "ErrorData",
    "ChatEnvelope",
    "HistoryResponse",
    "WidgetSettings",
    "WidgetConfig",
    "HealthResponse",
    "ConnectionStatus",
    "CacheClearResponse",
]
