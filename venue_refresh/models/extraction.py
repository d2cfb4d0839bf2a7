"""Extraction models: tiers, per-entity state machine, LLM outcomes, results.

Each entity in the work queue moves through an explicit state machine::

    PENDING ──tier 1──► RESOLVED
       │
       ▼
    TIER1_ATTEMPTED ──tier 2──► RESOLVED
       │                 (or UNRESOLVED when LLM tiers are disabled)
       ▼
    TIER2_ATTEMPTED ──tier 3──► RESOLVED
       │
       ▼
    TIER3_ATTEMPTED ──► UNRESOLVED

A tier is never skipped silently: when a tier is not run for an entity
(no usable content, LLM tiers disabled) a ``skipped`` :class:`TierAttempt`
records the decision and the state still advances through that tier.
:meth:`EntityProgress.advance` rejects any transition not in the table.

LLM responses are validated on receipt into exactly one of
:class:`Resolved`, :class:`NotFound` or :class:`Malformed`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from venue_refresh.utils.errors import PipelineError

WEEKDAYS: tuple[str, ...] = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


class Provenance(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Where a resolved value came from; stored with every result."""

    REGEX = "regex"
    LLM_WEBSITE = "llm-website"
    LLM_KNOWLEDGE = "llm-knowledge"


class Tier(IntEnum):
    """Extraction tiers in escalation order (cheapest first)."""

    DETERMINISTIC = 1
    CONTENT_LLM = 2
    KNOWLEDGE_LLM = 3

    @property
    def provenance(self) -> Provenance:
        return _TIER_PROVENANCE[self]

    @property
    def attempted_state(self) -> EntityState:
        return _TIER_ATTEMPTED_STATE[self]


class EntityState(str, Enum):  # noqa: UP042
    PENDING = "pending"
    TIER1_ATTEMPTED = "tier1-attempted"
    TIER2_ATTEMPTED = "tier2-attempted"
    TIER3_ATTEMPTED = "tier3-attempted"
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"

    @property
    def is_terminal(self) -> bool:
        return self in (EntityState.RESOLVED, EntityState.UNRESOLVED)


_TIER_PROVENANCE = {
    Tier.DETERMINISTIC: Provenance.REGEX,
    Tier.CONTENT_LLM: Provenance.LLM_WEBSITE,
    Tier.KNOWLEDGE_LLM: Provenance.LLM_KNOWLEDGE,
}

_TIER_ATTEMPTED_STATE = {
    Tier.DETERMINISTIC: EntityState.TIER1_ATTEMPTED,
    Tier.CONTENT_LLM: EntityState.TIER2_ATTEMPTED,
    Tier.KNOWLEDGE_LLM: EntityState.TIER3_ATTEMPTED,
}

ALLOWED_TRANSITIONS: dict[EntityState, frozenset[EntityState]] = {
    EntityState.PENDING: frozenset({EntityState.RESOLVED, EntityState.TIER1_ATTEMPTED}),
    EntityState.TIER1_ATTEMPTED: frozenset({
        EntityState.RESOLVED, EntityState.TIER2_ATTEMPTED, EntityState.UNRESOLVED,
    }),
    EntityState.TIER2_ATTEMPTED: frozenset({
        EntityState.RESOLVED, EntityState.TIER3_ATTEMPTED, EntityState.UNRESOLVED,
    }),
    EntityState.TIER3_ATTEMPTED: frozenset({EntityState.UNRESOLVED}),
    EntityState.RESOLVED: frozenset(),
    EntityState.UNRESOLVED: frozenset(),
}


class AttemptOutcome(str, Enum):  # noqa: UP042
    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"
    ERROR = "error"
    SKIPPED = "skipped"


class TierAttempt(BaseModel):
    model_config = ConfigDict(frozen=True)

    tier: Tier
    outcome: AttemptOutcome
    detail: str = ""


# ---------------------------------------------------------------------------
# Operating hours payload
# ---------------------------------------------------------------------------

class DayHours(BaseModel):
    """Opening interval for one weekday, 24-hour ``HH:MM`` strings."""

    model_config = ConfigDict(frozen=True)

    open: str = Field(pattern=r"^([01]\d|2[0-4]):[0-5]\d$")
    close: str = Field(pattern=r"^([01]\d|2[0-4]):[0-5]\d$")


class OperatingHours(BaseModel):
    """Weekly hours: weekday key -> interval, or ``None`` for closed.

    Days absent from ``days`` are unknown, not closed.
    """

    model_config = ConfigDict(frozen=True)

    days: dict[str, DayHours | None] = Field(default_factory=dict)

    @field_validator("days")
    @classmethod
    def _known_weekdays(cls, value: dict[str, DayHours | None]) -> dict[str, DayHours | None]:
        unknown = set(value) - set(WEEKDAYS)
        if unknown:
            msg = f"unknown weekday keys: {sorted(unknown)}"
            raise ValueError(msg)
        return {day: value[day] for day in WEEKDAYS if day in value}

    @property
    def covered_days(self) -> int:
        return len(self.days)

    def to_payload(self) -> dict[str, dict[str, str] | str]:
        """Serialize as ``{"mon": {"open": .., "close": ..} | "closed"}``."""
        payload: dict[str, dict[str, str] | str] = {}
        for day, hours in self.days.items():
            payload[day] = "closed" if hours is None else {"open": hours.open, "close": hours.close}
        return payload


# ---------------------------------------------------------------------------
# LLM outcome variants
# ---------------------------------------------------------------------------

class Resolved(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["resolved"] = "resolved"
    hours: OperatingHours


class NotFound(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["not_found"] = "not_found"
    reason: str = ""


class Malformed(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["malformed"] = "malformed"
    detail: str
    raw: str = ""


LLMOutcome = Annotated[Union[Resolved, NotFound, Malformed], Field(discriminator="kind")]


# ---------------------------------------------------------------------------
# Results and per-entity progress
# ---------------------------------------------------------------------------

class ExtractionResult(BaseModel):
    """A resolved value plus everything needed to audit where it came from.

    A later run's result for the same entity supersedes this one; results are
    never merged.
    """

    model_config = ConfigDict(frozen=True)

    entity_id: str
    tier: Tier
    provenance: Provenance
    payload: OperatingHours
    prompt_version: str | None = None
    content_fingerprint: str | None = None
    produced_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )


class EntityProgress(BaseModel):
    """Immutable per-entity state; use :meth:`advance` to move it forward."""

    model_config = ConfigDict(frozen=True)

    entity_id: str
    state: EntityState = EntityState.PENDING
    attempts: list[TierAttempt] = Field(default_factory=list)
    result: ExtractionResult | None = None
    content_fingerprint: str | None = None

    def advance(
        self,
        new_state: EntityState,
        attempt: TierAttempt | None = None,
        result: ExtractionResult | None = None,
    ) -> EntityProgress:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise PipelineError(
                f"Illegal transition for {self.entity_id}: {self.state.value} -> {new_state.value}"
            )
        if new_state is EntityState.RESOLVED and result is None:
            raise PipelineError(f"Resolved transition for {self.entity_id} requires a result")
        attempts = [*self.attempts, attempt] if attempt is not None else self.attempts
        return self.model_copy(update={
            "state": new_state,
            "attempts": attempts,
            "result": result if result is not None else self.result,
        })

    def record(self, attempt: TierAttempt) -> EntityProgress:
        """Append an attempt without changing state (e.g. a skipped tier)."""
        if self.state.is_terminal:
            raise PipelineError(f"{self.entity_id} is already {self.state.value}")
        return self.model_copy(update={"attempts": [*self.attempts, attempt]})

    @property
    def resolved_tier(self) -> Tier | None:
        return self.result.tier if self.result else None
