"""Claude through the Anthropic Messages API.

Unlike the chat-completions backends, the system prompt travels as its own
``system`` argument and the answer arrives as a list of content blocks, of
which only the ``text`` ones are kept.
"""

from __future__ import annotations

import anthropic
import structlog

from venue_refresh.config.settings import Settings
from venue_refresh.interfaces.llm_provider import ILLMProvider
from venue_refresh.utils.errors import LLMError, LLMTimeoutError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "claude-3-5-haiku-latest"


class AnthropicLLMProvider(ILLMProvider):
    def __init__(self, settings: Settings, timeout_seconds: float = 60.0) -> None:
        self._api_key = settings.anthropic_api_key
        self._model = settings.anthropic_model or _DEFAULT_MODEL
        self._timeout_seconds = timeout_seconds
        # max_retries=0: a 429 must reach the retry orchestrator untouched.
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key, timeout=timeout_seconds, max_retries=0)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
        max_tokens: int = 2000,
    ) -> str:
        try:
            message = await self._client.messages.create(
                model=self._model,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except anthropic.RateLimitError as exc:
            raise RateLimitError(f"429 from {self._model}: {exc}", provider_name="anthropic") from exc
        except anthropic.APITimeoutError as exc:
            raise LLMTimeoutError(
                f"{self._model} gave no answer within {self._timeout_seconds:.0f}s",
                provider_name="anthropic",
            ) from exc
        except anthropic.APIError as exc:
            raise LLMError(f"{self._model} request failed: {exc}", provider_name="anthropic") from exc

        parts = [block.text for block in message.content if block.type == "text"]
        if not parts:
            raise LLMError(f"{self._model} sent no text blocks", provider_name="anthropic")

        logger.debug(
            "messages_completion_done",
            model=self._model,
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
        )
        return "\n".join(parts)

    def get_provider_name(self) -> str:
        return "anthropic"

    def get_model_name(self) -> str:
        return self._model

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def validate_credentials(self) -> bool:
        """A one-token request; Anthropic has no free authenticated endpoint."""
        if not self._api_key:
            return False
        try:
            await self._client.messages.create(
                model=self._model,
                max_tokens=1,
                messages=[{"role": "user", "content": "ping"}],
            )
        except anthropic.APIError:
            return False
        return True

    async def aclose(self) -> None:
        await self._client.close()
