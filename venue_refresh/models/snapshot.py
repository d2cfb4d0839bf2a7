"""Snapshot models for the two-generation content store.

A :class:`Snapshot` is the captured text of one venue's pages at one point in
time.  Snapshots are immutable; a re-fetch writes a new snapshot.  The store
keeps two generations (``current`` and ``previous``) plus a
:class:`GenerationMarker` recording the last calendar day a rotation ran.

``schema_version`` is written with every snapshot.  Documents from older
writers (no version, a stored ``hash``/``contentHash``, ``content`` instead
of ``text``) are upgraded by :meth:`Snapshot.from_document`; a stored hash is
kept as ``legacy_hash`` for debugging only and never used for comparison.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

SNAPSHOT_SCHEMA_VERSION = 2


class Generation(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Which side of the daily rotation a snapshot lives on."""

    CURRENT = "current"
    PREVIOUS = "previous"


class RotationOutcome(str, Enum):  # noqa: UP042
    """What :meth:`SnapshotStore.rotate` did."""

    SKIPPED_SAME_DAY = "skipped_same_day"  # marker already equals today
    ROTATED = "rotated"                    # current moved into previous
    BASELINE = "baseline"                  # previous was empty; seeded from current
    EMPTY = "empty"                        # nothing to rotate; marker advanced


class Page(BaseModel):
    """Text captured from one URL."""

    model_config = ConfigDict(frozen=True)

    url: str
    text: str = ""
    captured_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )


class Snapshot(BaseModel):
    """Captured content of one venue in one generation."""

    model_config = ConfigDict(frozen=True)

    entity_id: str
    pages: list[Page] = Field(default_factory=list)
    generation: Generation = Generation.CURRENT
    written_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    schema_version: int = SNAPSHOT_SCHEMA_VERSION
    legacy_hash: str | None = None

    def texts(self) -> list[str]:
        return [page.text for page in self.pages]

    def joined_text(self) -> str:
        """Raw page texts joined by newlines, line structure preserved."""
        return "\n".join(self.texts())

    def in_generation(self, generation: Generation) -> Snapshot:
        return self.model_copy(update={"generation": generation})

    @classmethod
    def from_document(
        cls,
        data: dict[str, Any],
        generation: Generation,
        entity_id: str | None = None,
    ) -> Snapshot:
        """Build a snapshot from a stored JSON document, upgrading old layouts."""
        if data.get("schema_version", 1) >= SNAPSHOT_SCHEMA_VERSION:
            return cls.model_validate({**data, "generation": generation})

        pages = []
        for raw_page in data.get("pages") or []:
            if isinstance(raw_page, str):
                pages.append({"url": "", "text": raw_page})
                continue
            pages.append({
                "url": raw_page.get("url", ""),
                "text": raw_page.get("text", raw_page.get("content", "")) or "",
                **({"captured_at": raw_page["captured_at"]} if raw_page.get("captured_at") else {}),
            })
        stored_id = data.get("entity_id") or data.get("venueId") or data.get("id") or entity_id
        upgraded: dict[str, Any] = {
            "entity_id": str(stored_id) if stored_id is not None else None,
            "pages": pages,
            "generation": generation,
            "schema_version": SNAPSHOT_SCHEMA_VERSION,
            "legacy_hash": data.get("hash") or data.get("contentHash"),
        }
        written = data.get("written_at") or data.get("scrapedAt")
        if written:
            upgraded["written_at"] = written
        return cls.model_validate(upgraded)


class GenerationMarker(BaseModel):
    """Last calendar day on which the store rotated."""

    model_config = ConfigDict(frozen=True)

    last_rotated: date
    schema_version: int = SNAPSHOT_SCHEMA_VERSION
