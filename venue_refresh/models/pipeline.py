"""Run-level models: lock records, run options, run summary, last-run record.

All models use frozen config; counters are accumulated by the orchestrator
and frozen into a :class:`RunSummary` once per run (including failed runs,
where the summary carries whatever partial counts were reached).
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from venue_refresh.models.snapshot import RotationOutcome


class RunStatus(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    RUNNING = "running"
    COMPLETED = "completed"
    LOCKED = "locked"       # another run held the lock; not an error
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Pipeline lock
# ---------------------------------------------------------------------------

class LockRecord(BaseModel):
    """Contents of the lock entry.

    ``token`` is unique per acquisition and is what release compares against,
    so a process can only ever delete its own lock.
    """

    model_config = ConfigDict(frozen=True)

    pipeline: str
    holder: str
    pid: int
    token: str
    acquired_at: datetime
    refreshed_at: datetime

    def age_seconds(self, now: datetime) -> float:
        """Seconds since the holder last proved it was alive."""
        return (now - self.refreshed_at).total_seconds()


class LockAcquisition(BaseModel):
    """Result of :meth:`PipelineLock.acquire`.

    When ``acquired`` is False, ``holder`` is the record that blocked us and
    ``age_seconds`` its age; contention is reported, never raised.
    """

    model_config = ConfigDict(frozen=True)

    acquired: bool
    record: LockRecord | None = None
    holder: LockRecord | None = None
    age_seconds: float | None = None
    reclaimed_stale: bool = False


# ---------------------------------------------------------------------------
# Run options / summary
# ---------------------------------------------------------------------------

class RunOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    run_date: date | None = None       # override "today" (backfills, tests)
    tier1_only: bool = False           # never call an LLM
    dry_run: bool = False              # extract but do not persist results
    full: bool = False                 # queue every current entity, not just the delta
    refetch: bool = False              # re-fetch venues already captured today


class RunSummary(BaseModel):
    """Operator-facing outcome of one run."""

    model_config = ConfigDict(frozen=True)

    run_date: date
    status: RunStatus
    rotation: RotationOutcome | None = None
    fetched: int = 0
    fetch_failures: int = 0
    new: int = 0
    changed: int = 0
    unchanged: int = 0
    unreadable: int = 0
    queued: int = 0
    carried_over: int = 0
    resolved_tier1: int = 0
    resolved_tier2: int = 0
    resolved_tier3: int = 0
    unresolved: int = 0
    persisted: int = 0
    rate_limit_waits: int = 0
    llm_calls: int = 0
    dry_run: bool = False
    error: str | None = None
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    finished_at: datetime | None = None

    @property
    def resolved(self) -> int:
        return self.resolved_tier1 + self.resolved_tier2 + self.resolved_tier3

    @property
    def success_rate(self) -> float:
        attempted = self.resolved + self.unresolved
        return (self.resolved / attempted * 100.0) if attempted else 0.0

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def format_text(self) -> str:
        """Render a plain-text block for logs and chat notifications."""
        lines = [
            f"Venue refresh {self.run_date.isoformat()}: {self.status.value.upper()}",
        ]
        if self.status is RunStatus.LOCKED:
            lines.append("Another run holds the pipeline lock; nothing done.")
            return "\n".join(lines)
        if self.rotation is not None:
            lines.append(f"Rotation: {self.rotation.value}")
        lines.append(f"Fetched: {self.fetched} ({self.fetch_failures} failed)")
        lines.append(
            f"Delta: {self.new} new, {self.changed} changed, {self.unchanged} unchanged"
            + (f", {self.unreadable} unreadable" if self.unreadable else "")
        )
        if self.carried_over:
            lines.append(f"Carried over from an unfinished run: {self.carried_over}")
        lines.append(
            f"Extraction: tier1={self.resolved_tier1} tier2={self.resolved_tier2} "
            f"tier3={self.resolved_tier3} unresolved={self.unresolved} "
            f"({self.success_rate:.1f}% success)"
        )
        if self.rate_limit_waits:
            lines.append(f"Rate-limit waits: {self.rate_limit_waits}")
        lines.append("Persisted: dry run" if self.dry_run else f"Persisted: {self.persisted}")
        if self.duration_seconds is not None:
            lines.append(f"Duration: {self.duration_seconds:.1f}s")
        if self.error:
            lines.append(f"Error: {self.error}")
        return "\n".join(lines)


class RunRecord(BaseModel):
    """Last-run bookkeeping persisted in the state store for ``status``."""

    model_config = ConfigDict(frozen=True)

    status: RunStatus
    run_date: date
    started_at: datetime
    finished_at: datetime | None = None
    summary: RunSummary | None = None


class PendingWork(BaseModel):
    """Work queue of a run that has not finished cleanly.

    Written before extraction starts and narrowed to the unfinished entities
    if the run fails or is cancelled, so a crash anywhere in between still
    leaves the whole queue behind.  Maps entity id to the content
    fingerprint the work was queued for.  Removed once a run completes.
    """

    model_config = ConfigDict(frozen=True)

    run_date: date
    entities: dict[str, str | None] = Field(default_factory=dict)
