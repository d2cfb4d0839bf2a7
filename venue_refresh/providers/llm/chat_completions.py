"""Shared base for backends that speak the OpenAI chat-completions protocol.

Both the hosted OpenAI adapter (and any compatible endpoint such as xAI or
Groq) and the local Ollama adapter talk to ``/v1/chat/completions`` through
``openai.AsyncOpenAI``.  Subclasses only decide how the client is built and
what the backend is called; the request shape, the error mapping and the
empty-answer check live here.

    openai.RateLimitError   -> RateLimitError
    openai.APITimeoutError  -> LLMTimeoutError
    openai.APIError         -> LLMError
"""

from __future__ import annotations

import openai
import structlog

from venue_refresh.interfaces.llm_provider import ILLMProvider
from venue_refresh.utils.errors import LLMError, LLMTimeoutError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)

CONNECT_TIMEOUT_SECONDS = 5.0


def build_client(timeout_seconds: float, **kwargs) -> openai.AsyncOpenAI:
    """Client with SDK retries off; 429 handling belongs to the retry orchestrator."""
    return openai.AsyncOpenAI(
        timeout=openai.Timeout(timeout_seconds, connect=CONNECT_TIMEOUT_SECONDS),
        max_retries=0,
        **kwargs,
    )


class ChatCompletionsProvider(ILLMProvider):
    def __init__(
        self,
        client: openai.AsyncOpenAI,
        model: str,
        label: str,
        timeout_seconds: float,
    ) -> None:
        self._client = client
        self._model = model
        self._label = label
        self._timeout_seconds = timeout_seconds

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
        max_tokens: int = 2000,
    ) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.RateLimitError as exc:
            raise RateLimitError(f"429 from {self._model}: {exc}", provider_name=self._label) from exc
        except openai.APITimeoutError as exc:
            raise LLMTimeoutError(
                f"{self._model} gave no answer within {self._timeout_seconds:.0f}s",
                provider_name=self._label,
            ) from exc
        except openai.APIError as exc:
            raise LLMError(f"{self._model} request failed: {exc}", provider_name=self._label) from exc

        text = response.choices[0].message.content if response.choices else None
        if not text:
            raise LLMError(f"{self._model} sent an empty answer", provider_name=self._label)

        usage = response.usage
        logger.debug(
            "chat_completion_done",
            provider=self._label,
            model=self._model,
            total_tokens=usage.total_tokens if usage else None,
        )
        return text

    def get_provider_name(self) -> str:
        return self._label

    def get_model_name(self) -> str:
        return self._model

    async def aclose(self) -> None:
        await self._client.close()
