"""Abstract base class for extraction result persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod

from venue_refresh.models.extraction import ExtractionResult


# Concrete implementation: SQLiteResultStore (venue_refresh/providers/results/)
class IResultStore(ABC):
    """Contract for storing the latest resolved value per entity.

    Saving a result for an entity replaces any earlier result for it
    (latest wins, no merging).  Saves are idempotent.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables / directories.  Safe to call repeatedly."""

    @abstractmethod
    async def save(self, result: ExtractionResult) -> None:
        """Upsert *result*.

        Raises
        ------
        venue_refresh.utils.errors.PersistenceError
            If the write fails.
        """

    @abstractmethod
    async def get(self, entity_id: str) -> ExtractionResult | None:
        """Return the latest stored result for *entity_id*, or ``None``."""

    @abstractmethod
    async def count(self) -> int:
        """Return the number of entities with a stored result."""
