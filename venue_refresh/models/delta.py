"""Change-detection results.

Delta records are ephemeral: computed once per run from the two snapshot
generations and never persisted.
"""

from __future__ import annotations

from collections import Counter
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DeltaClass(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    NEW = "new"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


class DeltaRecord(BaseModel):
    """Classification of one entity present in the current generation."""

    model_config = ConfigDict(frozen=True)

    entity_id: str
    classification: DeltaClass
    current_fingerprint: str | None = None
    previous_fingerprint: str | None = None
    # Why a fail-safe classification was chosen (e.g. "previous_unreadable").
    reason: str | None = None

    @property
    def needs_work(self) -> bool:
        return self.classification is not DeltaClass.UNCHANGED


class DeltaReport(BaseModel):
    """All delta records for a run, in entity-id order.

    ``unreadable`` lists entities whose *current* snapshot could not be read;
    they get no record and are therefore never extracted this run.
    """

    model_config = ConfigDict(frozen=True)

    records: list[DeltaRecord] = Field(default_factory=list)
    unreadable: list[str] = Field(default_factory=list)

    @property
    def work_queue(self) -> list[str]:
        """Entity ids classified new or changed, in record order."""
        return [record.entity_id for record in self.records if record.needs_work]

    def counts(self) -> dict[str, int]:
        tally = Counter(record.classification.value for record in self.records)
        return {cls.value: tally.get(cls.value, 0) for cls in DeltaClass}

    def get(self, entity_id: str) -> DeltaRecord | None:
        for record in self.records:
            if record.entity_id == entity_id:
                return record
        return None
