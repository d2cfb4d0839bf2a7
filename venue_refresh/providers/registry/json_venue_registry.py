"""Venue registry backed by a JSON file.

Accepts either a top-level list of venue objects or ``{"venues": [...]}``.
Each entry needs an ``id`` and a ``name`` plus ``urls`` (list) or
``website`` (single URL).  Numeric ids are converted to strings.  Invalid
entries are logged and skipped so one bad row never blocks a run.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from venue_refresh.interfaces.venue_registry import IVenueRegistry
from venue_refresh.models.venue import Venue
from venue_refresh.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


def _coerce_entry(entry: dict[str, Any]) -> dict[str, Any]:
    data = dict(entry)
    if "id" in data and not isinstance(data["id"], str):
        data["id"] = str(data["id"])
    if "urls" not in data and data.get("website"):
        data["urls"] = [data["website"]]
    return data


class JsonVenueRegistry(IVenueRegistry):
    """Reads the venue list from *path* on every :meth:`list_venues` call."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    async def list_venues(self) -> list[Venue]:
        if not self._path.exists():
            raise ConfigurationError(
                message=f"venue registry not found: {self._path}",
                provider_name="registry",
            )
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(
                message=f"cannot read venue registry {self._path}: {exc}",
                provider_name="registry",
            ) from exc

        entries = raw.get("venues", []) if isinstance(raw, dict) else raw
        if not isinstance(entries, list):
            raise ConfigurationError(
                message=f"venue registry {self._path} must hold a list of venues",
                provider_name="registry",
            )

        venues: dict[str, Venue] = {}
        for position, entry in enumerate(entries):
            if not isinstance(entry, dict):
                logger.warning("venue_entry_skipped", position=position, reason="not an object")
                continue
            try:
                venue = Venue.model_validate(_coerce_entry(entry))
            except ValidationError as exc:
                logger.warning(
                    "venue_entry_skipped",
                    position=position,
                    reason=f"{exc.error_count()} validation errors",
                )
                continue
            if venue.id in venues:
                logger.warning("venue_duplicate_id", venue_id=venue.id, position=position)
            venues[venue.id] = venue

        return [venues[venue_id] for venue_id in sorted(venues)]
