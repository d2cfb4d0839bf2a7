"""Contract for the model backends behind the two LLM extraction tiers.

Tier 2 sends a venue's own page text and asks for the hours in it; tier 3
sends only names and locations and asks what the model already knows.  Both
go through :class:`ILLMProvider`, so the tier code never imports an SDK.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: AnthropicLLMProvider, OpenAILLMProvider, OllamaLLMProvider
# Located in: venue_refresh/providers/llm/
class ILLMProvider(ABC):
    """One chat-style completion endpoint."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
        max_tokens: int = 2000,
    ) -> str:
        """Return the model's text answer to one system + user exchange.

        Implementations translate their SDK's failures into three errors
        and nothing else:

        ``RateLimitError``
            HTTP 429.  The caller backs off and retries the same request.
        ``LLMTimeoutError``
            The request outlived the provider's timeout.
        ``LLMError``
            Anything else, including an answer with no text in it.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Short label used in logs and error prefixes."""

    @abstractmethod
    def get_model_name(self) -> str:
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the settings carry what this backend needs (key or URL)."""

    @abstractmethod
    async def validate_credentials(self) -> bool:
        """Cheap round trip proving the backend accepts us; never raises."""

    async def aclose(self) -> None:
        """Release the underlying HTTP client.  No-op unless overridden."""
