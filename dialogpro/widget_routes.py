from fastapi import APIRouter, Depends

from .auth import issue_nonce
from .deps import get_session_store, get_settings
from .models import WidgetConfig, WidgetSettings
from .session import SessionStore
from .settings import Settings


router = APIRouter(prefix="/widget", tags=["widget"])

I18N_STRINGS = {
    "sending": "Sending...",
    "error": "Error sending message",
    "tokenLimitReached": "Token limit reached",
}


@router.get("/config", response_model=WidgetConfig)
async def get_widget_config(
    settings: Settings = Depends(get_settings),
    session: SessionStore = Depends(get_session_store),
) -> WidgetConfig:
    """
    Bootstrap data for the chat widget. Also establishes the session
    cookies and hands out the nonce required by POST /chat/message.
    """
    return WidgetConfig(
        nonce=issue_nonce(settings, session.session_id),
        tokenCount=session.token_count,
        settings=WidgetSettings(
            position=settings.chat_position,
            width=settings.chat_width,
            primaryColor=settings.primary_color,
            fontFamily=settings.font_family,
            fontSize=settings.font_size,
            welcomeMessage=settings.welcome_message,
            tokenLimit=settings.token_limit,
        ),
        i18n=dict(I18N_STRINGS),
    )


__all__ = ["router", "I18N_STRINGS"]
