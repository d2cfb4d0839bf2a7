"""OpenAI, or any service cloning its API when ``OPENAI_BASE_URL`` is set."""

from __future__ import annotations

import openai

from venue_refresh.config.settings import Settings
from venue_refresh.providers.llm.chat_completions import ChatCompletionsProvider, build_client

_DEFAULT_MODEL = "gpt-4o-mini"


class OpenAILLMProvider(ChatCompletionsProvider):
    """Labelled ``openai``, or ``openai-compatible`` behind a custom base URL."""

    def __init__(self, settings: Settings, timeout_seconds: float = 60.0) -> None:
        self._api_key = settings.openai_api_key
        endpoint = {"base_url": settings.openai_base_url} if settings.openai_base_url else {}
        super().__init__(
            client=build_client(timeout_seconds, api_key=self._api_key, **endpoint),
            model=settings.openai_text_model or _DEFAULT_MODEL,
            label="openai-compatible" if endpoint else "openai",
            timeout_seconds=timeout_seconds,
        )

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def validate_credentials(self) -> bool:
        # Listing models costs nothing and still authenticates the key.
        if not self._api_key:
            return False
        try:
            await self._client.models.list()
        except openai.APIError:
            return False
        return True
