"""Pydantic v2 data models for venue-refresh.

All models are frozen; state changes produce new instances via
``model_copy(update={...})``.
"""

from venue_refresh.models.delta import DeltaClass, DeltaRecord, DeltaReport
from venue_refresh.models.extraction import (
    WEEKDAYS,
    AttemptOutcome,
    DayHours,
    EntityProgress,
    EntityState,
    ExtractionResult,
    LLMOutcome,
    Malformed,
    NotFound,
    OperatingHours,
    Provenance,
    Resolved,
    Tier,
    TierAttempt,
)
from venue_refresh.models.pipeline import (
    LockAcquisition,
    LockRecord,
    RunOptions,
    PendingWork,
    RunRecord,
    RunStatus,
    RunSummary,
)
from venue_refresh.models.snapshot import (
    Generation,
    GenerationMarker,
    Page,
    RotationOutcome,
    Snapshot,
)
from venue_refresh.models.venue import Venue

__all__ = [
    "WEEKDAYS",
    "AttemptOutcome",
    "DayHours",
    "DeltaClass",
    "DeltaRecord",
    "DeltaReport",
    "EntityProgress",
    "EntityState",
    "ExtractionResult",
    "Generation",
    "GenerationMarker",
    "LLMOutcome",
    "LockAcquisition",
    "LockRecord",
    "Malformed",
    "NotFound",
    "OperatingHours",
    "Page",
    "PendingWork",
    "Provenance",
    "Resolved",
    "RotationOutcome",
    "RunOptions",
    "RunRecord",
    "RunStatus",
    "RunSummary",
    "Snapshot",
    "Tier",
    "TierAttempt",
    "Venue",
]
