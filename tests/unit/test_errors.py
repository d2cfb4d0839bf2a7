"""Unit tests for the venue-refresh exception hierarchy."""

from __future__ import annotations

from venue_refresh.utils.errors import (
    LLMError,
    LLMTimeoutError,
    RateLimitError,
    RetryBudgetExhaustedError,
    VenueRefreshError,
)


def test_provider_prefix() -> None:
    assert str(LLMError("boom", provider_name="openai")) == "[openai] boom"
    assert str(LLMError("boom")) == "boom"


def test_default_message_per_class() -> None:
    assert LLMTimeoutError().message == "LLM API call timed out"
    assert RateLimitError(provider_name="anthropic").message == "Rate limit exceeded"


def test_rate_limit_is_not_an_llm_error() -> None:
    assert not isinstance(RateLimitError(), LLMError)
    assert isinstance(LLMTimeoutError(), LLMError)
    assert isinstance(RateLimitError(), VenueRefreshError)


def test_retry_budget_carries_attempts() -> None:
    exc = RetryBudgetExhaustedError(message="still limited", attempts=100)
    assert exc.attempts == 100
    assert str(exc) == "still limited"
