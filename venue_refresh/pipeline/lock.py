"""Cross-process pipeline lock on top of :class:`IStateStore`.

At most one run of a named pipeline may be active.  Acquisition is a single
atomic ``create_exclusive`` of ``locks/<name>.json``; when the key already
exists the record is inspected:

- younger than ``stale_after_seconds`` -> refused, holder reported;
- older, or unreadable -> **stale**: removed with compare-and-delete against
  the exact bytes we inspected, then re-created exclusively.  If another
  process reclaims first, one of those two steps fails for us and we report
  contention instead of stealing its fresh lock.

Age is measured from ``refreshed_at``; a run suspended in a long rate-limit
backoff calls :meth:`PipelineLock.refresh` so it never looks abandoned.
Release deletes the record only if it still carries our token.
"""

from __future__ import annotations

import os
import socket
import uuid

from pydantic import ValidationError

from venue_refresh.interfaces.state_store import IStateStore
from venue_refresh.models.pipeline import LockAcquisition, LockRecord
from venue_refresh.utils.clock import Clock
from venue_refresh.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_STALE_AFTER_SECONDS = 3 * 60 * 60


def default_holder_name() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


class PipelineLock:
    """Named mutual-exclusion lock for pipeline runs.

    One instance can hold at most one lock per pipeline name; the token of
    each acquired record is kept so :meth:`release` and :meth:`refresh` only
    ever touch our own record.
    """

    def __init__(
        self,
        store: IStateStore,
        clock: Clock,
        stale_after_seconds: float = DEFAULT_STALE_AFTER_SECONDS,
        holder: str | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._stale_after = stale_after_seconds
        self._holder = holder or default_holder_name()
        self._held: dict[str, LockRecord] = {}

    @staticmethod
    def _key(name: str) -> str:
        return f"locks/{name}.json"

    @staticmethod
    def _encode(record: LockRecord) -> bytes:
        return record.model_dump_json().encode("utf-8")

    def _new_record(self, name: str) -> LockRecord:
        now = self._clock.now()
        return LockRecord(
            pipeline=name,
            holder=self._holder,
            pid=os.getpid(),
            token=uuid.uuid4().hex,
            acquired_at=now,
            refreshed_at=now,
        )

    def holder(self, name: str) -> LockRecord | None:
        """Return the current lock record for *name*, or ``None``.

        An unreadable record is reported as ``None`` (and treated as stale by
        :meth:`acquire`).
        """
        raw = self._store.read(self._key(name))
        if raw is None:
            return None
        try:
            return LockRecord.model_validate_json(raw)
        except ValidationError:
            return None

    def is_held(self, name: str) -> bool:
        return name in self._held

    def acquire(self, name: str) -> LockAcquisition:
        """Try to take the lock for *name*.  Never blocks, never raises on contention."""
        key = self._key(name)
        record = self._new_record(name)
        if self._store.create_exclusive(key, self._encode(record)):
            self._held[name] = record
            logger.info("lock_acquired", pipeline=name, holder=record.holder)
            return LockAcquisition(acquired=True, record=record)

        existing_raw = self._store.read(key)
        if existing_raw is None:
            # Released between our create attempt and the read; try once more.
            if self._store.create_exclusive(key, self._encode(record)):
                self._held[name] = record
                logger.info("lock_acquired", pipeline=name, holder=record.holder)
                return LockAcquisition(acquired=True, record=record)
            return LockAcquisition(acquired=False, holder=self.holder(name))

        try:
            existing = LockRecord.model_validate_json(existing_raw)
        except ValidationError:
            existing = None

        now = self._clock.now()
        age = existing.age_seconds(now) if existing else None
        if existing is not None and age < self._stale_after:
            logger.warning(
                "lock_contended",
                pipeline=name,
                holder=existing.holder,
                pid=existing.pid,
                age_seconds=round(age, 1),
            )
            return LockAcquisition(acquired=False, holder=existing, age_seconds=age)

        logger.warning(
            "lock_stale_reclaiming",
            pipeline=name,
            previous_holder=existing.holder if existing else None,
            age_seconds=round(age, 1) if age is not None else None,
            corrupt=existing is None,
        )
        if not self._store.delete_if_equal(key, existing_raw):
            logger.warning("lock_reclaim_lost_race", pipeline=name)
            return LockAcquisition(acquired=False, holder=self.holder(name))

        record = self._new_record(name)
        if not self._store.create_exclusive(key, self._encode(record)):
            logger.warning("lock_reclaim_lost_race", pipeline=name)
            return LockAcquisition(acquired=False, holder=self.holder(name))

        self._held[name] = record
        logger.info("lock_acquired", pipeline=name, holder=record.holder, reclaimed_stale=True)
        return LockAcquisition(acquired=True, record=record, holder=existing, age_seconds=age, reclaimed_stale=True)

    def refresh(self, name: str) -> bool:
        """Bump ``refreshed_at`` on our own record.  Returns ``False`` if we lost it."""
        held = self._held.get(name)
        if held is None:
            return False
        key = self._key(name)
        current = self._store.read(key)
        if current is None or current != self._encode(held):
            logger.error("lock_lost", pipeline=name)
            self._held.pop(name, None)
            return False
        updated = held.model_copy(update={"refreshed_at": self._clock.now()})
        self._store.write(key, self._encode(updated))
        self._held[name] = updated
        logger.debug("lock_refreshed", pipeline=name)
        return True

    def release(self, name: str) -> bool:
        """Delete our record for *name*.  A record we no longer own is left alone."""
        held = self._held.pop(name, None)
        if held is None:
            return False
        released = self._store.delete_if_equal(self._key(name), self._encode(held))
        if released:
            logger.info("lock_released", pipeline=name)
        else:
            logger.warning("lock_release_skipped_not_owner", pipeline=name)
        return released
