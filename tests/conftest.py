"""Shared pytest fixtures for the venue-refresh test suite."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from venue_refresh.interfaces.llm_provider import ILLMProvider
from venue_refresh.models.snapshot import Page
from venue_refresh.models.venue import Venue
from venue_refresh.providers.state.memory_state_store import MemoryStateStore
from venue_refresh.utils.clock import Clock

# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------

START = datetime(2026, 3, 2, 6, 0, tzinfo=timezone.utc)  # noqa: UP017


class FakeClock(Clock):
    """Virtual clock: ``sleep`` records the wait and advances time instantly."""

    def __init__(self, start: datetime = START) -> None:
        self._now = start
        self._monotonic = 0.0
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self._now

    def today(self) -> date:
        return self._now.date()

    def monotonic(self) -> float:
        return self._monotonic

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)
        self._monotonic += seconds

    def set_day(self, day: date) -> None:
        self._now = datetime(day.year, day.month, day.day, 6, 0, tzinfo=timezone.utc)  # noqa: UP017

    @property
    def long_sleeps(self) -> list[float]:
        """Sleeps of a minute or more (backoff waits, not call spacing)."""
        return [s for s in self.sleeps if s >= 60]


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> MemoryStateStore:
    return MemoryStateStore()


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------

HOURS_PAGE = (
    "Welcome to The Anchor\n"
    "Hours\n"
    "Monday: 11:00 AM - 10:00 PM\n"
    "Tuesday: 11:00 AM - 10:00 PM\n"
    "Wednesday: 11:00 AM - 10:00 PM\n"
    "Thursday: 11:00 AM - 11:00 PM\n"
    "Call us to book a table for large parties."
)

NO_HOURS_PAGE = (
    "Welcome to Blue Door, a neighbourhood bar with craft beer, natural wine "
    "and a rotating food truck. Follow the link below to see our menu."
)


def make_venue(venue_id: str, name: str | None = None, address: str | None = "1 Main St") -> Venue:
    return Venue(
        id=venue_id,
        name=name or f"Venue {venue_id}",
        address=address,
        urls=[f"https://{venue_id}.example.com/"],
    )


def make_pages(*texts: str) -> list[Page]:
    return [
        Page(url=f"https://example.com/page{index}", text=text, captured_at=START)
        for index, text in enumerate(texts)
    ]


@pytest.fixture()
def venues() -> list[Venue]:
    return [make_venue("anchor", "The Anchor"), make_venue("blue-door", "Blue Door")]


# ---------------------------------------------------------------------------
# LLM
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_llm_provider() -> MagicMock:
    """ILLMProvider mock; set ``complete.side_effect`` / ``return_value`` per test."""
    provider = MagicMock(spec=ILLMProvider)
    provider.complete = AsyncMock(return_value='{"found": false}')
    provider.get_provider_name.return_value = "mock-llm"
    provider.get_model_name.return_value = "mock-model"
    provider.is_available.return_value = True
    provider.validate_credentials = AsyncMock(return_value=True)
    return provider
