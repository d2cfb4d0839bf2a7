"""Unit tests for rate-limit backoff and the run-wide retry budget."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from conftest import FakeClock

from venue_refresh.config.schema import BackoffConfig
from venue_refresh.services.retry_orchestrator import RetryOrchestrator
from venue_refresh.utils.errors import LLMError, RateLimitError, RetryBudgetExhaustedError


def _flaky(failures: int, value: str = "ok") -> AsyncMock:
    """AsyncMock that raises RateLimitError *failures* times, then returns *value*."""
    effects: list[object] = [RateLimitError(provider_name="mock-llm")] * failures + [value]
    return AsyncMock(side_effect=effects)


class TestBackoffSchedule:
    @pytest.mark.asyncio
    async def test_success_needs_no_wait(self, clock: FakeClock) -> None:
        retry = RetryOrchestrator(BackoffConfig(), clock)
        assert await retry.call(_flaky(0)) == "ok"
        assert clock.sleeps == []
        assert retry.retries_used == 0

    @pytest.mark.asyncio
    async def test_first_rate_limit_waits_an_hour(self, clock: FakeClock) -> None:
        retry = RetryOrchestrator(BackoffConfig(), clock)
        fn = _flaky(1)
        assert await retry.call(fn) == "ok"
        assert clock.sleeps == [3600.0]
        assert fn.await_count == 2

    @pytest.mark.asyncio
    async def test_geometric_growth_capped(self, clock: FakeClock) -> None:
        retry = RetryOrchestrator(BackoffConfig(), clock)
        await retry.call(_flaky(4))
        assert clock.sleeps == [3600.0, 5400.0, 7200.0, 7200.0]
        assert retry.total_wait_seconds == pytest.approx(23400.0)
        assert retry.retries_used == 4

    @pytest.mark.asyncio
    async def test_success_resets_wait(self, clock: FakeClock) -> None:
        retry = RetryOrchestrator(BackoffConfig(), clock)
        await retry.call(_flaky(2))
        assert retry.next_wait_seconds == 3600.0
        await retry.call(_flaky(1))
        assert clock.sleeps == [3600.0, 5400.0, 3600.0]

    @pytest.mark.asyncio
    async def test_custom_schedule(self, clock: FakeClock) -> None:
        config = BackoffConfig(initial_seconds=10, multiplier=2.0, max_seconds=25)
        await RetryOrchestrator(config, clock).call(_flaky(3))
        assert clock.sleeps == [10.0, 20.0, 25.0]


class TestRetryBudget:
    @pytest.mark.asyncio
    async def test_exhaustion_raises(self, clock: FakeClock) -> None:
        retry = RetryOrchestrator(BackoffConfig(max_retries=2), clock)
        with pytest.raises(RetryBudgetExhaustedError) as exc_info:
            await retry.call(_flaky(5))
        assert exc_info.value.attempts == 2
        assert exc_info.value.provider_name == "mock-llm"
        assert len(clock.sleeps) == 2

    @pytest.mark.asyncio
    async def test_budget_shared_across_calls(self, clock: FakeClock) -> None:
        retry = RetryOrchestrator(BackoffConfig(max_retries=3), clock)
        await retry.call(_flaky(2))
        assert retry.retries_remaining == 1
        with pytest.raises(RetryBudgetExhaustedError):
            await retry.call(_flaky(2))

    @pytest.mark.asyncio
    async def test_zero_budget_fails_on_first_429(self, clock: FakeClock) -> None:
        retry = RetryOrchestrator(BackoffConfig(max_retries=0), clock)
        with pytest.raises(RetryBudgetExhaustedError):
            await retry.call(_flaky(1))
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_default_budget_is_one_hundred(self, clock: FakeClock) -> None:
        retry = RetryOrchestrator(BackoffConfig(), clock)
        with pytest.raises(RetryBudgetExhaustedError):
            await retry.call(_flaky(101))
        assert retry.retries_used == 100


class TestOtherErrors:
    @pytest.mark.asyncio
    async def test_non_rate_limit_errors_propagate_immediately(self, clock: FakeClock) -> None:
        retry = RetryOrchestrator(BackoffConfig(), clock)
        fn = AsyncMock(side_effect=LLMError(message="boom"))
        with pytest.raises(LLMError):
            await retry.call(fn)
        assert fn.await_count == 1
        assert clock.sleeps == []


class TestWaitHook:
    @pytest.mark.asyncio
    async def test_hook_runs_before_each_wait(self, clock: FakeClock) -> None:
        calls: list[tuple[float, int, int]] = []

        async def hook(wait: float, retries_used: int) -> None:
            calls.append((wait, retries_used, len(clock.sleeps)))

        retry = RetryOrchestrator(BackoffConfig(), clock, on_wait=hook)
        await retry.call(_flaky(2))
        assert calls == [(3600.0, 1, 0), (5400.0, 2, 1)]

    @pytest.mark.asyncio
    async def test_hook_error_aborts_the_call(self, clock: FakeClock) -> None:
        hook = AsyncMock(side_effect=LLMError(message="lock lost"))
        retry = RetryOrchestrator(BackoffConfig(), clock)
        retry.set_wait_hook(hook)
        with pytest.raises(LLMError):
            await retry.call(_flaky(1))
        assert clock.sleeps == []
