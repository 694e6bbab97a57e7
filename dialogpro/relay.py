"""
The relay pipeline: one user message in, one formatted bot reply out.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict

from .cache import ResponseCache
from .errors import Err, Ok, Result, invalid_session
from .history import HistoryStore
from .logging_config import logger
from .models import FormattedResponse, MessageExchange
from .sanitizer import estimate_tokens, safe_html, validate
from .session import SessionStore
from .upstream import UpstreamClient, upstream_text


class RelayPipeline:
    def __init__(
        self,
        *,
        session: SessionStore,
        cache: ResponseCache,
        upstream: UpstreamClient,
        history: HistoryStore,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._session = session
        self._cache = cache
        self._upstream = upstream
        self._history = history
        self._clock = clock

    async def handle(self, raw_message: str, session_id: str) -> Result[FormattedResponse]:
        """
        Relay `raw_message` for `session_id`.

        Order: validate, check the session, consult the cache, call the
        upstream on a miss, charge tokens, cache, format, record history.
        A cache hit skips the upstream call, the charge and the cache write.

        Tokens are charged after the upstream has answered. When that charge
        crosses the limit the request fails with QUOTA_EXCEEDED and the
        answer is neither cached nor refunded.
        """
        validated = validate(raw_message)
        if isinstance(validated, Err):
            logger.info(
                "Rejected message for session %s: %s", session_id, validated.error.kind.value
            )
            return validated
        message = validated.value

        if not self._session.is_valid():
            logger.info("Refusing message for invalid session %r", session_id)
            return invalid_session()

        response = await self._cache.get(message, session_id)
        if response is not None:
            logger.debug("Cache hit for session %s", session_id)
        else:
            sent = await self._upstream.send(message, session_id)
            if isinstance(sent, Err):
                error = sent.error
                logger.error(
                    "Relay failed for session %s: kind=%s status=%s detail=%s",
                    session_id,
                    error.kind.value,
                    error.status,
                    (error.detail or "")[:500],
                )
                return sent
            response = sent.value

            cost = estimate_tokens(raw_message + upstream_text(response))
            charged = await self._session.update_token_count(cost)
            if isinstance(charged, Err):
                return charged

            await self._cache.put(message, session_id, response)

        formatted = self._format(response)
        await self._history.append(
            MessageExchange(
                session_id=session_id,
                user_text=message,
                bot_text=formatted.message,
                token_count_after=formatted.token_count,
                timestamp=formatted.timestamp,
            )
        )
        return Ok(formatted)

    def _format(self, response: Dict[str, Any]) -> FormattedResponse:
        return FormattedResponse(
            message=safe_html(upstream_text(response)),
            timestamp=int(self._clock()),
            token_count=self._session.token_count,
            session_valid=self._session.is_valid(),
        )


__all__ = ["RelayPipeline"]
