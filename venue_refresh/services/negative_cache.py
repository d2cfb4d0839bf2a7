"""Memo of conclusive "not found" answers per entity, content and tier.

When an LLM tier answers NotFound for an entity, asking again about the
same content with the same prompt will (at temperature 0) give the same
answer and cost the same tokens.  The memo is keyed on the entity and tier
and remembers the content fingerprint and prompt version; any change to
either invalidates it.  Malformed answers and errors are never memoised.
"""

from __future__ import annotations

from datetime import datetime, timezone
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from venue_refresh.interfaces.state_store import IStateStore
from venue_refresh.models.extraction import Tier
from venue_refresh.utils.logging import get_logger

logger = get_logger(__name__)

_PREFIX = "negatives"


class NegativeMemo(BaseModel):
    model_config = ConfigDict(frozen=True)

    fingerprint: str
    prompt_version: str
    reason: str = ""
    recorded_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )


class NegativeResultCache:
    """Reads and writes :class:`NegativeMemo` entries in the state store."""

    def __init__(self, store: IStateStore) -> None:
        self._store = store

    @staticmethod
    def _key(entity_id: str, tier: Tier) -> str:
        encoded = quote(entity_id, safe="").replace(".", "%2E")
        return f"{_PREFIX}/{encoded}/tier{int(tier)}.json"

    def is_known_negative(
        self,
        entity_id: str,
        tier: Tier,
        fingerprint: str | None,
        prompt_version: str,
    ) -> bool:
        if fingerprint is None:
            return False
        raw = self._store.read(self._key(entity_id, tier))
        if raw is None:
            return False
        try:
            memo = NegativeMemo.model_validate_json(raw)
        except ValidationError:
            logger.warning("negative_memo_unreadable", entity_id=entity_id, tier=int(tier))
            return False
        return memo.fingerprint == fingerprint and memo.prompt_version == prompt_version

    def remember(
        self,
        entity_id: str,
        tier: Tier,
        fingerprint: str | None,
        prompt_version: str,
        reason: str = "",
    ) -> None:
        if fingerprint is None:
            return
        memo = NegativeMemo(fingerprint=fingerprint, prompt_version=prompt_version, reason=reason)
        self._store.write(self._key(entity_id, tier), memo.model_dump_json().encode("utf-8"))

    def forget(self, entity_id: str) -> None:
        """Drop every memo for *entity_id* (called once it resolves)."""
        for tier in (Tier.CONTENT_LLM, Tier.KNOWLEDGE_LLM):
            self._store.delete(self._key(entity_id, tier))
