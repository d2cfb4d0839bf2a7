"""Venue registries."""

from venue_refresh.providers.registry.json_venue_registry import JsonVenueRegistry

__all__ = ["JsonVenueRegistry"]
