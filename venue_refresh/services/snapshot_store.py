"""Two-generation snapshot store with once-per-day rotation.

Layout inside the injected :class:`IStateStore`::

    snapshots/current/<entity>.json    -- written by today's fetch
    snapshots/previous/<entity>.json   -- what the last run compared against
    snapshots/marker.json              -- {"last_rotated": "YYYY-MM-DD"}

Entity ids are opaque, so they are percent-encoded (dots included) before
becoming key segments.  The generation is implied by the key prefix and is
not stored inside the document, which lets rotation move raw bytes.

Rotation rules (see :meth:`SnapshotStore.rotate`):

- marker already at ``today`` (or later) -> no-op.  Re-runs on the same day
  keep comparing against the same previous generation.
- current empty -> only the marker advances.
- previous empty -> *baseline*: current is copied into previous and kept, so
  the first day after a reset classifies everything unchanged rather than
  new.
- otherwise every current snapshot replaces the same entity in previous and
  current is cleared.  Entities absent from current keep their previous
  snapshot.
"""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from urllib.parse import quote, unquote

from pydantic import ValidationError

from venue_refresh.interfaces.state_store import IStateStore
from venue_refresh.models.snapshot import (
    Generation,
    GenerationMarker,
    Page,
    RotationOutcome,
    Snapshot,
)
from venue_refresh.utils.errors import SnapshotCorruptError
from venue_refresh.utils.logging import get_logger

logger = get_logger(__name__)

_PREFIX = "snapshots"
_MARKER_KEY = f"{_PREFIX}/marker.json"
_SUFFIX = ".json"


def _encode_id(entity_id: str) -> str:
    return quote(entity_id, safe="").replace(".", "%2E")


def _decode_id(segment: str) -> str:
    return unquote(segment)


class SnapshotStore:
    """Reads, writes and rotates venue snapshots.

    Parameters
    ----------
    store:
        Backing key-value store (filesystem in production, memory in tests).
    """

    def __init__(self, store: IStateStore) -> None:
        self._store = store

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    @staticmethod
    def _key(entity_id: str, generation: Generation) -> str:
        return f"{_PREFIX}/{generation.value}/{_encode_id(entity_id)}{_SUFFIX}"

    @staticmethod
    def _prefix(generation: Generation) -> str:
        return f"{_PREFIX}/{generation.value}"

    # ------------------------------------------------------------------
    # Marker
    # ------------------------------------------------------------------

    def marker(self) -> GenerationMarker | None:
        """Return the generation marker, or ``None`` if absent or unreadable.

        An unreadable marker is logged and treated as absent, so the next
        run rotates; that costs at most one extra rotation.
        """
        raw = self._store.read(_MARKER_KEY)
        if raw is None:
            return None
        try:
            return GenerationMarker.model_validate_json(raw)
        except ValidationError as exc:
            logger.error("generation_marker_unreadable", error=str(exc))
            return None

    def _write_marker(self, today: date) -> None:
        marker = GenerationMarker(last_rotated=today)
        self._store.write(_MARKER_KEY, marker.model_dump_json().encode("utf-8"))

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------

    def rotate(self, today: date) -> RotationOutcome:
        """Promote current to previous at most once per calendar day.

        Idempotent: calling it again with the same ``today`` changes nothing.
        """
        marker = self.marker()
        if marker is not None and marker.last_rotated >= today:
            if marker.last_rotated > today:
                logger.warning(
                    "rotation_marker_ahead_of_today",
                    last_rotated=marker.last_rotated.isoformat(),
                    today=today.isoformat(),
                )
            logger.info("rotation_skipped", last_rotated=marker.last_rotated.isoformat())
            return RotationOutcome.SKIPPED_SAME_DAY

        current_keys = self._store.list_keys(self._prefix(Generation.CURRENT))
        previous_keys = self._store.list_keys(self._prefix(Generation.PREVIOUS))

        if not current_keys:
            outcome = RotationOutcome.EMPTY
        elif not previous_keys:
            for key in current_keys:
                self._copy(key, Generation.PREVIOUS)
            outcome = RotationOutcome.BASELINE
        else:
            for key in current_keys:
                if self._copy(key, Generation.PREVIOUS):
                    self._store.delete(key)
            outcome = RotationOutcome.ROTATED

        # Marker last: a crash mid-rotation re-runs the rotation next time.
        self._write_marker(today)
        logger.info(
            "rotation_complete",
            outcome=outcome.value,
            today=today.isoformat(),
            moved=len(current_keys),
            previous_before=len(previous_keys),
        )
        return outcome

    def _copy(self, key: str, target: Generation) -> bool:
        data = self._store.read(key)
        if data is None:
            return False
        segment = key.rsplit("/", 1)[-1]
        self._store.write(f"{self._prefix(target)}/{segment}", data)
        return True

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    def write(
        self,
        entity_id: str,
        pages: list[Page],
        written_at: datetime | None = None,
    ) -> Snapshot:
        """Replace the current snapshot of *entity_id* (last writer wins)."""
        snapshot = Snapshot(
            entity_id=entity_id,
            pages=list(pages),
            generation=Generation.CURRENT,
            written_at=written_at or datetime.now(tz=timezone.utc),  # noqa: UP017
        )
        document = snapshot.model_dump_json(exclude={"generation"})
        self._store.write(self._key(entity_id, Generation.CURRENT), document.encode("utf-8"))
        logger.debug("snapshot_written", entity_id=entity_id, pages=len(snapshot.pages))
        return snapshot

    def read(self, entity_id: str, generation: Generation) -> Snapshot | None:
        """Return the snapshot or ``None`` if absent.

        Raises
        ------
        SnapshotCorruptError
            If the stored document cannot be decoded or validated.
        """
        raw = self._store.read(self._key(entity_id, generation))
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise TypeError(f"expected a JSON object, got {type(data).__name__}")
            snapshot = Snapshot.from_document(data, generation, entity_id=entity_id)
        except (ValueError, TypeError, AttributeError) as exc:
            # json.JSONDecodeError, UnicodeDecodeError and pydantic's
            # ValidationError are all ValueError subclasses.
            raise SnapshotCorruptError(
                f"{generation.value} snapshot for {entity_id!r} is unreadable: {exc}",
                provider_name=self._store.get_provider_name(),
            ) from exc
        if snapshot.entity_id != entity_id:
            raise SnapshotCorruptError(
                f"{generation.value} snapshot for {entity_id!r} names {snapshot.entity_id!r}",
                provider_name=self._store.get_provider_name(),
            )
        return snapshot

    def read_or_none(self, entity_id: str, generation: Generation) -> Snapshot | None:
        """Like :meth:`read`, but an unreadable snapshot is logged and treated as absent."""
        try:
            return self.read(entity_id, generation)
        except SnapshotCorruptError as exc:
            logger.warning(
                "snapshot_unreadable",
                entity_id=entity_id,
                generation=generation.value,
                error=str(exc),
            )
            return None

    def list_entities(self, generation: Generation) -> list[str]:
        """Entity ids present in *generation*, sorted."""
        ids = []
        for key in self._store.list_keys(self._prefix(generation)):
            segment = key.rsplit("/", 1)[-1]
            if segment.endswith(_SUFFIX):
                ids.append(_decode_id(segment[: -len(_SUFFIX)]))
        return sorted(ids)

    def exists(self, entity_id: str, generation: Generation) -> bool:
        return self._store.read(self._key(entity_id, generation)) is not None
