"""Abstract base class for venue web-content fetchers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from venue_refresh.models.snapshot import Page
from venue_refresh.models.venue import Venue


# Concrete implementation: HttpPageFetcher (venue_refresh/providers/fetch/)
class IContentFetcher(ABC):
    """Contract for turning a venue's URLs into captured page text."""

    @abstractmethod
    async def fetch(self, venue: Venue) -> list[Page]:
        """Fetch every URL of *venue* and return one :class:`Page` per success.

        Raises
        ------
        venue_refresh.utils.errors.FetchError
            If no page at all could be fetched.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this fetcher."""
