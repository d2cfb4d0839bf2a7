"""Rate-limit backoff for LLM calls.

When a provider answers HTTP 429 the whole batch is suspended: nothing else
calls the provider while we wait, because every other call would hit the
same limit.  Waits are measured in hours since provider quotas reset hourly:

    wait_1 = initial (3600 s)
    wait_n = min(wait_{n-1} * multiplier (1.5), maximum (7200 s))

A successful call resets the schedule to ``initial``.  The retry budget
(``max_retries``, 100) is shared by the whole run, so a provider that stays
rate-limited cannot keep the run alive forever; once it is spent the next
429 raises :class:`RetryBudgetExhaustedError`, which is run-fatal.

Only :class:`RateLimitError` is retried here.  Every other exception
propagates untouched so the tier coordinator can escalate it.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

from venue_refresh.config.schema import BackoffConfig
from venue_refresh.utils.clock import Clock
from venue_refresh.utils.errors import RateLimitError, RetryBudgetExhaustedError
from venue_refresh.utils.logging import get_logger

logger = get_logger(__name__)

_T = TypeVar("_T")

# Called with (wait_seconds, retries_used) before each backoff sleep.
WaitHook = Callable[[float, int], Awaitable[None]]


class RetryOrchestrator:
    """Runs LLM calls, suspending on rate limits with capped geometric backoff.

    Parameters
    ----------
    config:
        Backoff schedule and run-wide retry budget.
    clock:
        Time source; tests inject a fake whose ``sleep`` returns instantly.
    on_wait:
        Optional async hook invoked before every wait (the pipeline uses it
        to refresh its lock so a long backoff never looks stale).
    """

    def __init__(self, config: BackoffConfig, clock: Clock, on_wait: WaitHook | None = None) -> None:
        self._config = config
        self._clock = clock
        self._on_wait = on_wait
        self._retries_used = 0
        self._next_wait = config.initial_seconds
        self._total_wait = 0.0

    @property
    def retries_used(self) -> int:
        return self._retries_used

    @property
    def retries_remaining(self) -> int:
        return max(0, self._config.max_retries - self._retries_used)

    @property
    def total_wait_seconds(self) -> float:
        return self._total_wait

    @property
    def next_wait_seconds(self) -> float:
        return self._next_wait

    def set_wait_hook(self, on_wait: WaitHook | None) -> None:
        self._on_wait = on_wait

    async def call(self, fn: Callable[[], Awaitable[_T]], label: str = "llm") -> _T:
        """Await ``fn()``; on :class:`RateLimitError` back off and retry.

        Args:
            fn: Zero-argument coroutine factory; called again on each retry.
            label: Context for log events (e.g. ``"tier2:venue-42"``).

        Raises:
            RetryBudgetExhaustedError: The run-wide retry budget is spent.
        """
        while True:
            try:
                result = await fn()
            except RateLimitError as exc:
                if self._retries_used >= self._config.max_retries:
                    logger.error(
                        "rate_limit_retries_exhausted",
                        label=label,
                        retries_used=self._retries_used,
                    )
                    raise RetryBudgetExhaustedError(
                        message=(
                            f"still rate limited after {self._retries_used} retries "
                            f"({self._total_wait:.0f}s waited)"
                        ),
                        provider_name=exc.provider_name,
                        attempts=self._retries_used,
                    ) from exc

                self._retries_used += 1
                wait = min(self._next_wait, self._config.max_seconds)
                logger.warning(
                    "rate_limited_backing_off",
                    label=label,
                    wait_seconds=wait,
                    retry=self._retries_used,
                    max_retries=self._config.max_retries,
                    provider=exc.provider_name,
                )
                if self._on_wait is not None:
                    await self._on_wait(wait, self._retries_used)
                await self._clock.sleep(wait)
                self._total_wait += wait
                self._next_wait = min(wait * self._config.multiplier, self._config.max_seconds)
                continue

            if self._next_wait != self._config.initial_seconds:
                logger.info("rate_limit_cleared", label=label, retries_used=self._retries_used)
            self._next_wait = self._config.initial_seconds
            return result
