"""Token-bucket rate limiter for spacing outbound LLM calls.

The bucket holds up to ``capacity`` tokens and refills at ``rate`` tokens
per second.  :meth:`TokenBucketRateLimiter.acquire` takes one token,
waiting on the injected :class:`~venue_refresh.utils.clock.Clock` when the
bucket is empty.  With ``capacity=1`` this degenerates into a fixed minimum
interval between calls (e.g. 500 ms between tier-2 requests, 1 s between
tier-3 batches).
"""

from __future__ import annotations

from venue_refresh.utils.clock import Clock
from venue_refresh.utils.logging import get_logger

logger = get_logger(__name__)


class TokenBucketRateLimiter:
    """Async token bucket driven by an injectable clock.

    Not thread-safe; the pipeline is a single cooperative event loop and
    each tier owns its own limiter.
    """

    def __init__(self, rate: float, clock: Clock, capacity: float = 1.0, name: str = "llm") -> None:
        if rate <= 0:
            msg = f"rate must be positive, got {rate}"
            raise ValueError(msg)
        if capacity < 1:
            msg = f"capacity must be at least 1, got {capacity}"
            raise ValueError(msg)
        self._rate = rate
        self._capacity = capacity
        self._clock = clock
        self._name = name
        self._tokens = capacity
        self._last_refill = clock.monotonic()

    @classmethod
    def from_interval(cls, interval_seconds: float, clock: Clock, name: str = "llm") -> TokenBucketRateLimiter:
        """Build a limiter that allows one call per ``interval_seconds``."""
        return cls(rate=1.0 / interval_seconds, clock=clock, capacity=1.0, name=name)

    @property
    def available_tokens(self) -> float:
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock.monotonic()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
        self._last_refill = now

    async def acquire(self) -> None:
        """Take one token, sleeping until one is available."""
        self._refill()
        while self._tokens < 1:
            wait = (1 - self._tokens) / self._rate
            logger.debug("rate_limiter_wait", limiter=self._name, wait_seconds=round(wait, 3))
            await self._clock.sleep(wait)
            self._refill()
        self._tokens -= 1
