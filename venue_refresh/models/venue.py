"""Tracked venue as supplied by the venue registry."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Venue(BaseModel):
    """A venue whose website the pipeline keeps refreshed.

    ``id`` is an opaque identifier; the pipeline never parses it.  Venues are
    immutable for the duration of a run.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    address: str | None = None
    urls: list[str] = Field(min_length=1)

    def describe(self, default_location: str = "") -> str:
        """One-line "name at address" label used in knowledge prompts."""
        location = self.address or default_location
        return f"{self.name} at {location}" if location else self.name
