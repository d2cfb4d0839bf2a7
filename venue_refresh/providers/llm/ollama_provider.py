"""A self-hosted Ollama server, reached through its ``/v1`` compatibility API.

Local models cost nothing per call, but Ollama still answers 429 once its
request queue is full, so it goes through the same backoff as hosted APIs.
Configure with ``OLLAMA_BASE_URL`` (no ``/v1`` suffix) and ``OLLAMA_MODEL``.
"""

from __future__ import annotations

import httpx

from venue_refresh.config.settings import Settings
from venue_refresh.providers.llm.chat_completions import ChatCompletionsProvider, build_client

_DEFAULT_MODEL = "llama3.1"


class OllamaLLMProvider(ChatCompletionsProvider):
    def __init__(self, settings: Settings, timeout_seconds: float = 60.0) -> None:
        self._server = settings.ollama_base_url.rstrip("/")
        super().__init__(
            # Ollama ignores the key, the SDK insists on one.
            client=build_client(timeout_seconds, base_url=f"{self._server}/v1", api_key="ollama"),
            model=settings.ollama_model or _DEFAULT_MODEL,
            label="ollama",
            timeout_seconds=timeout_seconds,
        )

    def is_available(self) -> bool:
        return bool(self._server)

    async def validate_credentials(self) -> bool:
        """True when the native ``/api/tags`` endpoint answers 200."""
        if not self._server:
            return False
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self._server}/api/tags")
        except httpx.HTTPError:
            return False
        return response.status_code == 200
