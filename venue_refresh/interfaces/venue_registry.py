"""Abstract base class for the source of tracked venues."""

from __future__ import annotations

from abc import ABC, abstractmethod

from venue_refresh.models.venue import Venue


# Concrete implementation: JsonVenueRegistry (venue_refresh/providers/registry/)
class IVenueRegistry(ABC):
    """Supplies the venues to refresh.  Read-only for the pipeline."""

    @abstractmethod
    async def list_venues(self) -> list[Venue]:
        """Return all tracked venues, ordered by id."""

    async def get_venue(self, venue_id: str) -> Venue | None:
        """Return one venue by id, or ``None``."""
        for venue in await self.list_venues():
            if venue.id == venue_id:
                return venue
        return None
