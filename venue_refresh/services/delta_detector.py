"""Delta detection between the current and previous snapshot generations.

For every entity in the current generation (entity-id order):

- no previous snapshot                      -> ``new``
- previous unreadable / fingerprint failure -> ``changed`` (fail-safe: when
  in doubt, re-extract rather than silently keep stale data)
- equal fingerprints                        -> ``unchanged``
- otherwise                                 -> ``changed``

An unreadable *current* snapshot yields no record at all; it is reported in
:attr:`DeltaReport.unreadable` so the run summary shows it.  Entities that
exist only in the previous generation produce nothing.

Fingerprints are always recomputed from page text.  Hashes embedded in
older snapshot documents are ignored.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from venue_refresh.models.delta import DeltaClass, DeltaRecord, DeltaReport
from venue_refresh.models.snapshot import Generation, Snapshot
from venue_refresh.services.snapshot_store import SnapshotStore
from venue_refresh.utils.errors import SnapshotCorruptError
from venue_refresh.utils.logging import get_logger
from venue_refresh.utils.text_normalizer import fingerprint

logger = get_logger(__name__)

FingerprintFn = Callable[[Iterable[str]], str]


class DeltaDetector:
    """Classifies current-generation entities as new / changed / unchanged."""

    def __init__(self, snapshots: SnapshotStore, fingerprint_fn: FingerprintFn = fingerprint) -> None:
        self._snapshots = snapshots
        self._fingerprint = fingerprint_fn

    def _safe_fingerprint(self, snapshot: Snapshot) -> str | None:
        try:
            return self._fingerprint(snapshot.texts())
        except (ValueError, TypeError, UnicodeError) as exc:
            logger.warning(
                "fingerprint_failed",
                entity_id=snapshot.entity_id,
                generation=snapshot.generation.value,
                error=str(exc),
            )
            return None

    def classify(self, entity_id: str, current: Snapshot) -> DeltaRecord:
        """Classify one entity whose current snapshot is already loaded."""
        current_fp = self._safe_fingerprint(current)

        try:
            previous = self._snapshots.read(entity_id, Generation.PREVIOUS)
        except SnapshotCorruptError as exc:
            logger.warning("previous_snapshot_unreadable", entity_id=entity_id, error=str(exc))
            return DeltaRecord(
                entity_id=entity_id,
                classification=DeltaClass.CHANGED,
                current_fingerprint=current_fp,
                reason="previous_unreadable",
            )

        if previous is None:
            return DeltaRecord(
                entity_id=entity_id,
                classification=DeltaClass.NEW,
                current_fingerprint=current_fp,
            )

        previous_fp = self._safe_fingerprint(previous)
        if current_fp is None or previous_fp is None:
            return DeltaRecord(
                entity_id=entity_id,
                classification=DeltaClass.CHANGED,
                current_fingerprint=current_fp,
                previous_fingerprint=previous_fp,
                reason="fingerprint_failed",
            )

        classification = DeltaClass.UNCHANGED if current_fp == previous_fp else DeltaClass.CHANGED
        return DeltaRecord(
            entity_id=entity_id,
            classification=classification,
            current_fingerprint=current_fp,
            previous_fingerprint=previous_fp,
        )

    def detect(self, entity_ids: Iterable[str] | None = None) -> DeltaReport:
        """Build the delta report for the current generation.

        Args:
            entity_ids: Restrict detection to these ids.  Defaults to every
                        entity in the current generation.

        Returns:
            Records in sorted entity-id order plus the unreadable list.
        """
        ids = sorted(set(entity_ids)) if entity_ids is not None else self._snapshots.list_entities(
            Generation.CURRENT
        )

        records: list[DeltaRecord] = []
        unreadable: list[str] = []
        for entity_id in ids:
            try:
                current = self._snapshots.read(entity_id, Generation.CURRENT)
            except SnapshotCorruptError as exc:
                logger.warning("current_snapshot_unreadable", entity_id=entity_id, error=str(exc))
                unreadable.append(entity_id)
                continue
            if current is None:
                continue

            record = self.classify(entity_id, current)
            logger.debug(
                "delta_classified",
                entity_id=entity_id,
                classification=record.classification.value,
                reason=record.reason,
            )
            records.append(record)

        report = DeltaReport(records=records, unreadable=unreadable)
        logger.info("delta_complete", **report.counts(), unreadable=len(unreadable))
        return report
