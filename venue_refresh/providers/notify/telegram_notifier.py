"""Telegram run-summary notifier (Bot API ``sendMessage`` over httpx)."""

from __future__ import annotations

import httpx
import structlog

from venue_refresh.config.settings import Settings
from venue_refresh.interfaces.notifier import INotifier

logger = structlog.get_logger(logger_name=__name__)

_API_BASE = "https://api.telegram.org"
_MAX_MESSAGE_CHARS = 4096


class TelegramNotifier(INotifier):
    """Posts run summaries to one Telegram chat.

    Delivery problems are logged and reported as ``False``; they never
    propagate into the pipeline.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._token = settings.telegram_bot_token
        self._chat_id = settings.telegram_chat_id
        self._client = http_client
        self._timeout_seconds = timeout_seconds

    def is_available(self) -> bool:
        return bool(self._token and self._chat_id)

    async def _post(self, client: httpx.AsyncClient, text: str) -> httpx.Response:
        return await client.post(
            f"{_API_BASE}/bot{self._token}/sendMessage",
            json={"chat_id": self._chat_id, "text": text[:_MAX_MESSAGE_CHARS]},
        )

    async def send(self, text: str) -> bool:
        if not self.is_available():
            logger.debug("telegram_not_configured")
            return False
        try:
            if self._client is not None:
                response = await self._post(self._client, text)
            else:
                async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                    response = await self._post(client, text)
        except httpx.HTTPError as exc:
            logger.warning("telegram_send_failed", error=str(exc))
            return False

        if response.status_code != 200:
            logger.warning("telegram_send_rejected", status_code=response.status_code)
            return False
        logger.info("telegram_sent", chars=len(text))
        return True
