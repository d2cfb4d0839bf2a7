"""Abstract base class for run-summary notification channels."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: TelegramNotifier (venue_refresh/providers/notify/)
class INotifier(ABC):
    """Sends the operator a short text when a run finishes."""

    @abstractmethod
    async def send(self, text: str) -> bool:
        """Deliver *text*.  Returns ``True`` on success.

        Implementations log and return ``False`` on delivery failure rather
        than raising; a notification must never fail a run.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the channel is configured."""
