from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from .auth import verify_nonce
from .deps import get_history, get_pipeline, get_session_store, get_settings
from .errors import Err, RelayError
from .history import HistoryStore
from .logging_config import logger
from .models import ChatEnvelope, ChatMessageRequest, ErrorData, HistoryResponse
from .relay import RelayPipeline
from .session import SessionStore
from .settings import Settings


router = APIRouter(prefix="/chat", tags=["chat"])


def _error_envelope(response: Response, error: RelayError) -> ChatEnvelope:
    response.status_code = error.http_status
    return ChatEnvelope(
        success=False,
        data=ErrorData(message=error.public_message, error=error.kind.value),
    )


@router.post("/message", response_model=ChatEnvelope)
async def post_message(
    payload: ChatMessageRequest,
    response: Response,
    settings: Settings = Depends(get_settings),
    session: SessionStore = Depends(get_session_store),
    pipeline: RelayPipeline = Depends(get_pipeline),
) -> ChatEnvelope:
    """
    Relay one widget message. Failures keep the same envelope shape with
    `success: false` and a user-safe message.
    """
    if not verify_nonce(settings, payload.nonce, session.session_id):
        logger.info("Rejected message with bad nonce for session %s", session.session_id)
        response.status_code = status.HTTP_403_FORBIDDEN
        return ChatEnvelope(
            success=False,
            data=ErrorData(message="Security check failed", error="invalid_nonce"),
        )

    result = await pipeline.handle(payload.message, session.session_id)
    if isinstance(result, Err):
        return _error_envelope(response, result.error)
    return ChatEnvelope(success=True, data=result.value)


@router.get("/history", response_model=HistoryResponse)
async def get_chat_history(
    session: SessionStore = Depends(get_session_store),
    history: HistoryStore = Depends(get_history),
) -> HistoryResponse:
    messages = await history.read(session.session_id)
    return HistoryResponse(session_id=session.session_id, messages=messages)


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
async def clear_chat_session(
    session: SessionStore = Depends(get_session_store),
) -> None:
    """
    Log out: drop both session values so the next request starts fresh.
    """
    await session.clear()


__all__ = ["router"]
