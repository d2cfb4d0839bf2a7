"""Unit tests for the Telegram run-summary notifier."""

from __future__ import annotations

import json

import httpx
import pytest

from venue_refresh.config.settings import Settings
from venue_refresh.providers.notify.telegram_notifier import TelegramNotifier


def _settings(token: str = "123:abc", chat_id: str = "-10042") -> Settings:
    return Settings(telegram_bot_token=token, telegram_chat_id=chat_id)


class TestTelegramNotifier:
    def test_availability(self) -> None:
        assert TelegramNotifier(_settings()).is_available() is True
        assert TelegramNotifier(_settings(chat_id="")).is_available() is False

    @pytest.mark.asyncio
    async def test_send_posts_message(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        notifier = TelegramNotifier(_settings(), http_client=client)

        assert await notifier.send("Venue refresh: COMPLETED") is True
        assert str(seen[0].url) == "https://api.telegram.org/bot123:abc/sendMessage"
        assert json.loads(seen[0].content) == {"chat_id": "-10042", "text": "Venue refresh: COMPLETED"}

    @pytest.mark.asyncio
    async def test_long_text_truncated(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        await TelegramNotifier(_settings(), http_client=client).send("x" * 5000)
        assert len(bodies[0]["text"]) == 4096

    @pytest.mark.asyncio
    async def test_unconfigured_sends_nothing(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("should not be called")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        assert await TelegramNotifier(_settings(token=""), http_client=client).send("hi") is False

    @pytest.mark.asyncio
    async def test_rejected_message_returns_false(self) -> None:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(400, json={"ok": False}))
        )
        assert await TelegramNotifier(_settings(), http_client=client).send("hi") is False

    @pytest.mark.asyncio
    async def test_network_error_returns_false(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("no route to host", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        assert await TelegramNotifier(_settings(), http_client=client).send("hi") is False
