"""Injectable time source.

Everything in the pipeline that reads the wall clock, decides what "today"
is, or waits (rate-limit spacing, hour-long backoff) goes through a
:class:`Clock`.  Production wiring uses :class:`SystemClock`; tests inject a
fake whose ``sleep`` advances virtual time instantly.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


class Clock(ABC):
    """Contract for wall-clock reads, calendar-day resolution and waiting."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""

    @abstractmethod
    def today(self) -> date:
        """Return the current calendar date in the pipeline's timezone.

        Rotation happens at most once per value returned here, so the
        timezone decides when a "new day" starts.
        """

    @abstractmethod
    def monotonic(self) -> float:
        """Return a monotonically increasing seconds counter."""

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend the caller for ``seconds``."""


class SystemClock(Clock):
    """Real clock backed by :mod:`time`, :mod:`datetime` and ``asyncio.sleep``."""

    def __init__(self, tz_name: str = "UTC") -> None:
        self._tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        return datetime.now(tz=timezone.utc)  # noqa: UP017

    def today(self) -> date:
        return datetime.now(tz=self._tz).date()

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)
