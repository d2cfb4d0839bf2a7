"""Extraction tier coordinator.

Drives every entity in the work queue through the tier state machine
(:mod:`venue_refresh.models.extraction`), processing the queue **tier by
tier**: all entities get tier 1 before any entity gets tier 2, and all of
tier 2 finishes before the first tier-3 batch.  LLM calls are sequential,
spaced by a per-tier token bucket and wrapped in the retry orchestrator, so
a rate limit suspends the whole remaining batch.

Escalation rules:

- Tier 1 (regex) resolves only with enough weekdays; a miss or a parser
  exception escalates.  Entities with no usable page content record a
  tier-1 miss and a *skipped* tier 2, and go straight to tier 3.
- Tier 2 (content LLM): Resolved wins; NotFound, Malformed, timeouts and
  provider errors escalate.
- Tier 3 (knowledge LLM, batched): Resolved wins; anything else ends
  unresolved.
- LLM tiers are skipped for the whole run (recorded per entity) in
  tier-1-only mode, without a provider, or when more entities need them
  than ``max_llm_entities`` allows.

Progress lives in a :class:`CoordinatorRun` owned by the caller, so when a
fatal error (:class:`RetryBudgetExhaustedError`) aborts the run the partial
progress is still there for the summary.
"""

from __future__ import annotations

import functools
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from venue_refresh.config.schema import PipelineConfig
from venue_refresh.interfaces.state_store import IStateStore
from venue_refresh.models.extraction import (
    AttemptOutcome,
    EntityProgress,
    EntityState,
    ExtractionResult,
    LLMOutcome,
    Tier,
    TierAttempt,
)
from venue_refresh.models.snapshot import Generation
from venue_refresh.models.venue import Venue
from venue_refresh.services.hours_parser import HoursParser
from venue_refresh.services.llm_hours_extractor import (
    CONTENT_PROMPT_VERSION,
    KNOWLEDGE_PROMPT_VERSION,
    LLMHoursExtractor,
)
from venue_refresh.services.negative_cache import NegativeResultCache
from venue_refresh.services.retry_orchestrator import RetryOrchestrator
from venue_refresh.services.snapshot_store import SnapshotStore
from venue_refresh.utils.clock import Clock
from venue_refresh.utils.errors import LLMError
from venue_refresh.utils.logging import get_logger
from venue_refresh.utils.rate_limiter import TokenBucketRateLimiter
from venue_refresh.utils.text_normalizer import fingerprint

logger = get_logger(__name__)


@dataclass
class CoordinatorRun:
    """Mutable progress of one coordinator pass over a work queue.

    Internal bookkeeping, never serialized; the frozen per-entity
    :class:`EntityProgress` values inside it are what gets reported.
    """

    progress: dict[str, EntityProgress] = field(default_factory=dict)
    llm_calls: int = 0
    llm_skipped_reason: str | None = None

    @classmethod
    def for_queue(cls, entity_ids: Iterable[str]) -> CoordinatorRun:
        return cls(progress={eid: EntityProgress(entity_id=eid) for eid in entity_ids})

    def ids_in(self, state: EntityState) -> list[str]:
        return [eid for eid, progress in self.progress.items() if progress.state is state]

    def results(self) -> list[ExtractionResult]:
        return [p.result for p in self.progress.values() if p.result is not None]

    def resolved_count(self, tier: Tier) -> int:
        return sum(1 for p in self.progress.values() if p.resolved_tier is tier)

    @property
    def unresolved_count(self) -> int:
        return len(self.ids_in(EntityState.UNRESOLVED))

    @property
    def pending_count(self) -> int:
        return sum(1 for p in self.progress.values() if not p.state.is_terminal)


class TierCoordinator:
    """Runs the three extraction tiers over a work queue.

    Parameters
    ----------
    snapshots:
        Source of current page text.
    hours_parser:
        Tier-1 deterministic parser.
    extractor:
        Tier-2/3 LLM extractor; ``None`` when no provider is configured.
    retry:
        Rate-limit backoff wrapper shared by both LLM tiers.
    negatives:
        Memo of conclusive NotFound answers.
    clock:
        Time source for the per-tier rate limiters.
    config:
        Tier thresholds, batch size and call spacing.
    """

    def __init__(
        self,
        snapshots: SnapshotStore,
        hours_parser: HoursParser,
        extractor: LLMHoursExtractor | None,
        retry: RetryOrchestrator,
        negatives: NegativeResultCache,
        clock: Clock,
        config: PipelineConfig | None = None,
    ) -> None:
        self._snapshots = snapshots
        self._parser = hours_parser
        self._extractor = extractor
        self._retry = retry
        self._negatives = negatives
        self._clock = clock
        self._config = config or PipelineConfig()
        self._tier2_limiter = TokenBucketRateLimiter.from_interval(
            self._config.tier2.interval_seconds, clock, name="tier2"
        )
        self._tier3_limiter = TokenBucketRateLimiter.from_interval(
            self._config.tier3.interval_seconds, clock, name="tier3"
        )

    @classmethod
    def with_state_store(
        cls,
        store: IStateStore,
        hours_parser: HoursParser,
        extractor: LLMHoursExtractor | None,
        retry: RetryOrchestrator,
        clock: Clock,
        config: PipelineConfig | None = None,
    ) -> TierCoordinator:
        return cls(
            snapshots=SnapshotStore(store),
            hours_parser=hours_parser,
            extractor=extractor,
            retry=retry,
            negatives=NegativeResultCache(store),
            clock=clock,
            config=config,
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    @staticmethod
    def _transition(
        run: CoordinatorRun,
        entity_id: str,
        new_state: EntityState,
        attempt: TierAttempt | None = None,
        result: ExtractionResult | None = None,
    ) -> None:
        before = run.progress[entity_id]
        run.progress[entity_id] = before.advance(new_state, attempt=attempt, result=result)
        logger.info(
            "entity_transition",
            entity_id=entity_id,
            from_state=before.state.value,
            to_state=new_state.value,
            tier=int(attempt.tier) if attempt else None,
            outcome=attempt.outcome.value if attempt else None,
            detail=attempt.detail if attempt and attempt.detail else None,
        )

    def _resolve(
        self,
        run: CoordinatorRun,
        entity_id: str,
        tier: Tier,
        outcome: LLMOutcome,
        prompt_version: str | None,
    ) -> None:
        progress = run.progress[entity_id]
        result = ExtractionResult(
            entity_id=entity_id,
            tier=tier,
            provenance=tier.provenance,
            payload=outcome.hours,
            prompt_version=prompt_version,
            content_fingerprint=progress.content_fingerprint,
            produced_at=self._clock.now(),
        )
        self._transition(
            run,
            entity_id,
            EntityState.RESOLVED,
            TierAttempt(tier=tier, outcome=AttemptOutcome.RESOLVED, detail=f"{outcome.hours.covered_days} days"),
            result=result,
        )
        if tier is not Tier.DETERMINISTIC:
            self._negatives.forget(entity_id)

    def _escalate(
        self,
        run: CoordinatorRun,
        entity_id: str,
        tier: Tier,
        outcome: AttemptOutcome,
        detail: str = "",
    ) -> None:
        self._transition(run, entity_id, tier.attempted_state, TierAttempt(tier=tier, outcome=outcome, detail=detail))

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def process(
        self,
        run: CoordinatorRun,
        venues: Mapping[str, Venue],
        tier1_only: bool = False,
        max_llm_entities: int | None = None,
        use_negative_cache: bool = True,
    ) -> CoordinatorRun:
        """Run all tiers over ``run.progress`` in place and return *run*.

        Raises:
            RetryBudgetExhaustedError: Propagated from the retry orchestrator;
                ``run`` keeps whatever was resolved before the abort.
        """
        texts = self._run_tier1(run)

        candidates = [
            eid for eid, p in run.progress.items()
            if p.state in (EntityState.TIER1_ATTEMPTED, EntityState.TIER2_ATTEMPTED)
        ]
        limit = self._config.pipeline.max_llm_entities if max_llm_entities is None else max_llm_entities
        reason = None
        if not candidates:
            pass
        elif tier1_only:
            reason = "tier1_only"
        elif self._extractor is None:
            reason = "no_llm_provider"
        elif limit and len(candidates) > limit:
            reason = f"{len(candidates)} entities exceed max_llm_entities={limit}"
            logger.warning("llm_guard_tripped", candidates=len(candidates), limit=limit)

        if reason is not None:
            run.llm_skipped_reason = reason
            self._skip_llm_tiers(run, candidates, reason)
        else:
            await self._run_tier2(run, venues, texts, use_negative_cache)
            await self._run_tier3(run, venues, use_negative_cache)

        logger.info(
            "tiers_complete",
            tier1=run.resolved_count(Tier.DETERMINISTIC),
            tier2=run.resolved_count(Tier.CONTENT_LLM),
            tier3=run.resolved_count(Tier.KNOWLEDGE_LLM),
            unresolved=run.unresolved_count,
            llm_calls=run.llm_calls,
            llm_skipped_reason=reason,
        )
        return run

    # ------------------------------------------------------------------
    # Tier 1
    # ------------------------------------------------------------------

    def _run_tier1(self, run: CoordinatorRun) -> dict[str, str]:
        min_chars = self._config.pipeline.min_content_chars
        texts: dict[str, str] = {}

        for entity_id in run.ids_in(EntityState.PENDING):
            snapshot = self._snapshots.read_or_none(entity_id, Generation.CURRENT)
            text = snapshot.joined_text() if snapshot else ""
            content_fp = fingerprint(snapshot.texts()) if snapshot else None
            run.progress[entity_id] = run.progress[entity_id].model_copy(
                update={"content_fingerprint": content_fp}
            )

            if len(text.strip()) < min_chars:
                detail = "no snapshot" if snapshot is None else f"content under {min_chars} chars"
                self._escalate(run, entity_id, Tier.DETERMINISTIC, AttemptOutcome.NOT_FOUND, detail)
                self._escalate(run, entity_id, Tier.CONTENT_LLM, AttemptOutcome.SKIPPED, detail)
                continue

            texts[entity_id] = text
            try:
                hours = self._parser.parse(text)
            except (ValueError, TypeError) as exc:
                self._escalate(run, entity_id, Tier.DETERMINISTIC, AttemptOutcome.ERROR, str(exc))
                continue

            if hours is None:
                found = len(self._parser.extract_days(text))
                self._escalate(
                    run,
                    entity_id,
                    Tier.DETERMINISTIC,
                    AttemptOutcome.NOT_FOUND,
                    f"{found}/{self._parser.min_days} days matched",
                )
                continue

            result = ExtractionResult(
                entity_id=entity_id,
                tier=Tier.DETERMINISTIC,
                provenance=Tier.DETERMINISTIC.provenance,
                payload=hours,
                content_fingerprint=content_fp,
                produced_at=self._clock.now(),
            )
            self._transition(
                run,
                entity_id,
                EntityState.RESOLVED,
                TierAttempt(
                    tier=Tier.DETERMINISTIC,
                    outcome=AttemptOutcome.RESOLVED,
                    detail=f"{hours.covered_days} days",
                ),
                result=result,
            )
        return texts

    # ------------------------------------------------------------------
    # LLM tiers skipped
    # ------------------------------------------------------------------

    def _skip_llm_tiers(self, run: CoordinatorRun, entity_ids: list[str], reason: str) -> None:
        for entity_id in entity_ids:
            progress = run.progress[entity_id]
            if progress.state is EntityState.TIER1_ATTEMPTED:
                run.progress[entity_id] = progress.record(
                    TierAttempt(tier=Tier.CONTENT_LLM, outcome=AttemptOutcome.SKIPPED, detail=reason)
                )
            self._transition(
                run,
                entity_id,
                EntityState.UNRESOLVED,
                TierAttempt(tier=Tier.KNOWLEDGE_LLM, outcome=AttemptOutcome.SKIPPED, detail=reason),
            )

    # ------------------------------------------------------------------
    # Tier 2
    # ------------------------------------------------------------------

    async def _run_tier2(
        self,
        run: CoordinatorRun,
        venues: Mapping[str, Venue],
        texts: Mapping[str, str],
        use_negative_cache: bool,
    ) -> None:
        assert self._extractor is not None
        for entity_id in run.ids_in(EntityState.TIER1_ATTEMPTED):
            content_fp = run.progress[entity_id].content_fingerprint
            if use_negative_cache and self._negatives.is_known_negative(
                entity_id, Tier.CONTENT_LLM, content_fp, CONTENT_PROMPT_VERSION
            ):
                self._escalate(run, entity_id, Tier.CONTENT_LLM, AttemptOutcome.SKIPPED, "known negative")
                continue

            venue = venues.get(entity_id)
            call = functools.partial(
                self._extractor.extract_from_content,
                venue.name if venue else entity_id,
                texts.get(entity_id, ""),
            )
            await self._tier2_limiter.acquire()
            run.llm_calls += 1
            try:
                outcome = await self._retry.call(call, label=f"tier2:{entity_id}")
            except LLMError as exc:
                self._escalate(run, entity_id, Tier.CONTENT_LLM, AttemptOutcome.ERROR, str(exc))
                continue

            if outcome.kind == "resolved":
                self._resolve(run, entity_id, Tier.CONTENT_LLM, outcome, CONTENT_PROMPT_VERSION)
            elif outcome.kind == "not_found":
                self._negatives.remember(
                    entity_id, Tier.CONTENT_LLM, content_fp, CONTENT_PROMPT_VERSION, outcome.reason
                )
                self._escalate(run, entity_id, Tier.CONTENT_LLM, AttemptOutcome.NOT_FOUND, outcome.reason)
            else:
                self._escalate(run, entity_id, Tier.CONTENT_LLM, AttemptOutcome.MALFORMED, outcome.detail)

    # ------------------------------------------------------------------
    # Tier 3
    # ------------------------------------------------------------------

    async def _run_tier3(
        self,
        run: CoordinatorRun,
        venues: Mapping[str, Venue],
        use_negative_cache: bool,
    ) -> None:
        assert self._extractor is not None
        queue: list[str] = []
        for entity_id in run.ids_in(EntityState.TIER2_ATTEMPTED):
            content_fp = run.progress[entity_id].content_fingerprint
            if entity_id not in venues:
                self._give_up(run, entity_id, AttemptOutcome.SKIPPED, "venue not in registry")
            elif use_negative_cache and self._negatives.is_known_negative(
                entity_id, Tier.KNOWLEDGE_LLM, content_fp, KNOWLEDGE_PROMPT_VERSION
            ):
                self._give_up(run, entity_id, AttemptOutcome.SKIPPED, "known negative")
            else:
                queue.append(entity_id)

        batch_size = self._config.tier3.batch_size
        for start in range(0, len(queue), batch_size):
            batch = queue[start : start + batch_size]
            call = functools.partial(self._extractor.extract_from_knowledge, [venues[eid] for eid in batch])
            await self._tier3_limiter.acquire()
            run.llm_calls += 1
            try:
                outcomes = await self._retry.call(call, label=f"tier3:batch{start // batch_size}")
            except LLMError as exc:
                for entity_id in batch:
                    self._give_up(run, entity_id, AttemptOutcome.ERROR, str(exc))
                continue

            for entity_id, outcome in zip(batch, outcomes):
                if outcome.kind == "resolved":
                    self._resolve(run, entity_id, Tier.KNOWLEDGE_LLM, outcome, KNOWLEDGE_PROMPT_VERSION)
                elif outcome.kind == "not_found":
                    self._negatives.remember(
                        entity_id,
                        Tier.KNOWLEDGE_LLM,
                        run.progress[entity_id].content_fingerprint,
                        KNOWLEDGE_PROMPT_VERSION,
                        outcome.reason,
                    )
                    self._give_up(run, entity_id, AttemptOutcome.NOT_FOUND, outcome.reason)
                else:
                    self._give_up(run, entity_id, AttemptOutcome.MALFORMED, outcome.detail)

    def _give_up(self, run: CoordinatorRun, entity_id: str, outcome: AttemptOutcome, detail: str) -> None:
        self._escalate(run, entity_id, Tier.KNOWLEDGE_LLM, outcome, detail)
        self._transition(run, entity_id, EntityState.UNRESOLVED)
