"""Run driver for the venue refresh pipeline.

One call to :meth:`RefreshPipeline.run` is one scheduled run:

    configuration check -> lock -> rotate -> fetch -> delta -> tiers
    -> persist -> summary -> notify -> unlock

ARCHITECTURE NOTE:
    Every collaborator is injected (state store, clock, registry, fetcher,
    extractor, result store, notifier), so the same driver runs against the
    filesystem and real APIs in production and against in-memory fakes in
    tests.  ``main.build_pipeline`` does the production wiring.

    The lock is released in a ``finally`` block, so every exit path
    (success, fatal error, or cancellation, which is how the CLI delivers
    SIGTERM) gives it back.  Lock contention is not an error: the run
    returns a ``locked`` summary and the process exits 0.

    A summary is always produced and logged.  Fatal errors
    (RetryBudgetExhaustedError, PersistenceError, PipelineError) and
    cancellation produce a ``failed`` summary carrying the partial counts
    reached, then re-raise; a cancelled run reports ``terminated``.

    Delivery is at least once.  The work queue is written to
    ``runs/<name>/pending.json`` before extraction; a failed or cancelled
    run narrows it to what it did not finish, a completed run removes it,
    and the next run appends whatever is left to its own queue.  Dry runs
    read it but never change it.
"""

from __future__ import annotations

import asyncio
from datetime import date

import structlog

from venue_refresh.config.schema import PipelineConfig
from venue_refresh.interfaces.content_fetcher import IContentFetcher
from venue_refresh.interfaces.notifier import INotifier
from venue_refresh.interfaces.result_store import IResultStore
from venue_refresh.interfaces.state_store import IStateStore
from venue_refresh.interfaces.venue_registry import IVenueRegistry
from venue_refresh.models.delta import DeltaReport
from venue_refresh.models.extraction import Tier
from venue_refresh.models.pipeline import PendingWork, RunOptions, RunRecord, RunStatus, RunSummary
from venue_refresh.models.snapshot import Generation, RotationOutcome
from venue_refresh.models.venue import Venue
from venue_refresh.pipeline.lock import PipelineLock
from venue_refresh.services.delta_detector import DeltaDetector
from venue_refresh.services.hours_parser import HoursParser
from venue_refresh.services.llm_hours_extractor import LLMHoursExtractor
from venue_refresh.services.negative_cache import NegativeResultCache
from venue_refresh.services.retry_orchestrator import RetryOrchestrator
from venue_refresh.services.snapshot_store import SnapshotStore
from venue_refresh.services.tier_coordinator import CoordinatorRun, TierCoordinator
from venue_refresh.utils.clock import Clock
from venue_refresh.utils.errors import (
    ConfigurationError,
    FetchError,
    PipelineError,
    RetryBudgetExhaustedError,
)
from venue_refresh.utils.logging import run_context


class RefreshPipeline:
    """Drives one refresh run end to end.

    Parameters
    ----------
    store:
        Durable state (snapshots, marker, lock, memos, last-run record).
    clock:
        Time source for "today", timestamps and every wait.
    registry:
        Source of tracked venues.
    result_store:
        Where resolved results are persisted.
    fetcher:
        Optional; without one the run works on whatever is already in the
        current generation.
    extractor:
        Optional LLM extractor; required unless ``tier1_only``.
    notifier:
        Optional channel for the run summary.
    config:
        Validated tuning configuration.
    lock:
        Optional pre-built lock (tests pass one with a fixed holder name).
    """

    def __init__(
        self,
        store: IStateStore,
        clock: Clock,
        registry: IVenueRegistry,
        result_store: IResultStore,
        fetcher: IContentFetcher | None = None,
        extractor: LLMHoursExtractor | None = None,
        notifier: INotifier | None = None,
        config: PipelineConfig | None = None,
        lock: PipelineLock | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._registry = registry
        self._results = result_store
        self._fetcher = fetcher
        self._extractor = extractor
        self._notifier = notifier
        self._config = config or PipelineConfig()
        self._name = self._config.pipeline.name
        self._snapshots = SnapshotStore(store)
        self._lock = lock or PipelineLock(
            store, clock, stale_after_seconds=self._config.lock.stale_after_seconds
        )
        self._logger = structlog.get_logger(logger_name=__name__)

    @property
    def name(self) -> str:
        return self._name

    @property
    def lock(self) -> PipelineLock:
        return self._lock

    # ------------------------------------------------------------------
    # Last-run record
    # ------------------------------------------------------------------

    def _run_key(self) -> str:
        return f"runs/{self._name}/last.json"

    def _save_record(self, record: RunRecord) -> None:
        self._store.write(self._run_key(), record.model_dump_json().encode("utf-8"))

    def status(self) -> RunRecord | None:
        """Return the persisted record of the most recent run, if readable."""
        raw = self._store.read(self._run_key())
        if raw is None:
            return None
        try:
            return RunRecord.model_validate_json(raw)
        except ValueError:
            self._logger.warning("run_record_unreadable", pipeline=self._name)
            return None

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, options: RunOptions | None = None) -> RunSummary:
        """Execute one run.

        Raises:
            ConfigurationError: Before the lock is touched, when LLM tiers
                are requested without an LLM provider.
            RetryBudgetExhaustedError: Rate limits outlasted the retry budget.
            PersistenceError: Results could not be written.
        """
        options = options or RunOptions()
        run_date = options.run_date or self._clock.today()

        if self._extractor is None and not options.tier1_only:
            raise ConfigurationError(
                message="no LLM provider configured; set an API key or use --tier1-only",
            )

        acquisition = self._lock.acquire(self._name)
        if not acquisition.acquired:
            holder = acquisition.holder
            summary = RunSummary(
                run_date=run_date,
                status=RunStatus.LOCKED,
                started_at=self._clock.now(),
                finished_at=self._clock.now(),
                error=(
                    f"held by {holder.holder} (pid {holder.pid}) for {acquisition.age_seconds or 0:.0f}s"
                    if holder
                    else None
                ),
            )
            self._logger.warning("run_skipped_locked", pipeline=self._name, detail=summary.error)
            return summary

        try:
            with run_context(self._name, run_date.isoformat()):
                return await self._run_locked(run_date, options)
        finally:
            self._lock.release(self._name)

    async def _run_locked(self, run_date: date, options: RunOptions) -> RunSummary:
        started_at = self._clock.now()
        self._save_record(RunRecord(status=RunStatus.RUNNING, run_date=run_date, started_at=started_at))
        self._logger.info(
            "run_started",
            pipeline=self._name,
            run_date=run_date.isoformat(),
            tier1_only=options.tier1_only,
            dry_run=options.dry_run,
            full=options.full,
        )

        counts: dict = {"run_date": run_date, "started_at": started_at, "dry_run": options.dry_run}
        coordinator_run = CoordinatorRun()
        retry = RetryOrchestrator(self._config.backoff, self._clock, on_wait=self._on_backoff_wait)
        # Set once this run has written its queue as pending work.
        pending_report: DeltaReport | None = None
        saved: set[str] = set()

        try:
            await self._results.initialize()

            rotation = self._snapshots.rotate(run_date)
            counts["rotation"] = rotation

            venues = {venue.id: venue for venue in await self._registry.list_venues()}
            fetched, failures = await self._fetch_all(venues, rotation, options.refetch)
            counts.update(fetched=fetched, fetch_failures=failures)

            report = DeltaDetector(self._snapshots).detect()
            delta_counts = report.counts()
            counts.update(
                new=delta_counts["new"],
                changed=delta_counts["changed"],
                unchanged=delta_counts["unchanged"],
                unreadable=len(report.unreadable),
            )

            queue = self._work_queue(report, options.full)
            carried = self._carry_over(report, queue)
            queue.extend(carried)
            counts.update(queued=len(queue), carried_over=len(carried))
            coordinator_run = CoordinatorRun.for_queue(queue)
            if not options.dry_run:
                self._save_pending(run_date, queue, report)
                pending_report = report

            coordinator = TierCoordinator(
                snapshots=self._snapshots,
                hours_parser=HoursParser(min_days=self._config.tier1.min_days),
                extractor=self._extractor,
                retry=retry,
                negatives=NegativeResultCache(self._store),
                clock=self._clock,
                config=self._config,
            )
            try:
                await coordinator.process(
                    coordinator_run,
                    venues,
                    tier1_only=options.tier1_only,
                    use_negative_cache=not options.full,
                )
            except RetryBudgetExhaustedError:
                # Keep what was resolved before the provider locked us out.
                if not options.dry_run:
                    counts["persisted"] = await self._persist(coordinator_run, saved)
                raise

            counts["persisted"] = 0 if options.dry_run else await self._persist(coordinator_run, saved)
        except (Exception, asyncio.CancelledError) as exc:
            error = "terminated" if isinstance(exc, asyncio.CancelledError) else str(exc)
            if pending_report is not None:
                self._save_pending(run_date, self._unfinished(coordinator_run, saved), pending_report)
            summary = self._summarize(counts, coordinator_run, retry, RunStatus.FAILED, error=error)
            self._logger.error("run_failed", pipeline=self._name, error=error, error_type=type(exc).__name__)
            await self._finish(summary)
            raise

        if not options.dry_run:
            self._store.delete(self._pending_key())
        summary = self._summarize(counts, coordinator_run, retry, RunStatus.COMPLETED)
        await self._finish(summary)
        return summary

    # ------------------------------------------------------------------
    # Unfinished work carried between runs
    # ------------------------------------------------------------------

    def _pending_key(self) -> str:
        return f"runs/{self._name}/pending.json"

    def _load_pending(self) -> PendingWork | None:
        raw = self._store.read(self._pending_key())
        if raw is None:
            return None
        try:
            return PendingWork.model_validate_json(raw)
        except ValueError:
            self._logger.warning("pending_work_unreadable", pipeline=self._name)
            return None

    def _save_pending(self, run_date: date, entity_ids: list[str], report: DeltaReport) -> None:
        entities = {}
        for entity_id in entity_ids:
            record = report.get(entity_id)
            entities[entity_id] = record.current_fingerprint if record else None
        pending = PendingWork(run_date=run_date, entities=entities)
        self._store.write(self._pending_key(), pending.model_dump_json().encode("utf-8"))

    def _carry_over(self, report: DeltaReport, queue: list[str]) -> list[str]:
        """Entities a failed or killed run never finished that today's delta did not queue.

        Their content is unchanged since the failed run, so the delta alone
        would skip them for good.  Entities with no readable current snapshot
        are dropped; there is nothing to extract from.
        """
        pending = self._load_pending()
        if pending is None:
            return []
        queued = set(queue)
        carried = [
            entity_id for entity_id in pending.entities
            if entity_id not in queued and report.get(entity_id) is not None
        ]
        dropped = [entity_id for entity_id in pending.entities if report.get(entity_id) is None]
        self._logger.info(
            "pending_work_carried_over",
            from_run_date=pending.run_date.isoformat(),
            carried=len(carried),
            already_queued=len(pending.entities) - len(carried) - len(dropped),
            dropped=len(dropped),
        )
        return carried

    @staticmethod
    def _unfinished(coordinator_run: CoordinatorRun, saved: set[str]) -> list[str]:
        # Finished means a terminal state whose result, if any, reached the result store.
        return [
            entity_id
            for entity_id, progress in coordinator_run.progress.items()
            if not progress.state.is_terminal
            or (progress.result is not None and entity_id not in saved)
        ]

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _on_backoff_wait(self, wait_seconds: float, retries_used: int) -> None:
        if not self._lock.refresh(self._name):
            raise PipelineError(message=f"lost the {self._name} lock while backing off")
        self._logger.info("backoff_lock_refreshed", wait_seconds=wait_seconds, retry=retries_used)

    async def _fetch_all(
        self,
        venues: dict[str, Venue],
        rotation: RotationOutcome,
        refetch: bool,
    ) -> tuple[int, int]:
        if self._fetcher is None:
            self._logger.info("fetch_skipped_no_fetcher")
            return 0, 0

        # Only a same-day re-run can find today's content already in current.
        same_day = rotation is RotationOutcome.SKIPPED_SAME_DAY
        fetched = failures = 0
        for venue_id, venue in venues.items():
            if same_day and not refetch and self._snapshots.exists(venue_id, Generation.CURRENT):
                continue
            try:
                pages = await self._fetcher.fetch(venue)
            except FetchError as exc:
                failures += 1
                self._logger.warning("venue_fetch_failed", venue_id=venue_id, error=str(exc))
                continue
            self._snapshots.write(venue_id, pages, written_at=self._clock.now())
            fetched += 1

        self._logger.info("fetch_complete", fetched=fetched, failures=failures, venues=len(venues))
        return fetched, failures

    def _work_queue(self, report: DeltaReport, full: bool) -> list[str]:
        if not full:
            return report.work_queue
        unreadable = set(report.unreadable)
        return [
            entity_id
            for entity_id in self._snapshots.list_entities(Generation.CURRENT)
            if entity_id not in unreadable
        ]

    async def _persist(self, coordinator_run: CoordinatorRun, saved: set[str]) -> int:
        persisted = 0
        for result in coordinator_run.results():
            if result.entity_id in saved:
                continue
            await self._results.save(result)
            saved.add(result.entity_id)
            persisted += 1
        self._logger.info("results_persisted", count=persisted)
        return persisted

    def _summarize(
        self,
        counts: dict,
        coordinator_run: CoordinatorRun,
        retry: RetryOrchestrator,
        status: RunStatus,
        error: str | None = None,
    ) -> RunSummary:
        return RunSummary(
            **counts,
            status=status,
            resolved_tier1=coordinator_run.resolved_count(Tier.DETERMINISTIC),
            resolved_tier2=coordinator_run.resolved_count(Tier.CONTENT_LLM),
            resolved_tier3=coordinator_run.resolved_count(Tier.KNOWLEDGE_LLM),
            unresolved=coordinator_run.unresolved_count,
            rate_limit_waits=retry.retries_used,
            llm_calls=coordinator_run.llm_calls,
            error=error,
            finished_at=self._clock.now(),
        )

    async def _finish(self, summary: RunSummary) -> None:
        self._save_record(
            RunRecord(
                status=summary.status,
                run_date=summary.run_date,
                started_at=summary.started_at,
                finished_at=summary.finished_at,
                summary=summary,
            )
        )
        self._logger.info(
            "run_summary",
            pipeline=self._name,
            status=summary.status.value,
            resolved=summary.resolved,
            unresolved=summary.unresolved,
            rate_limit_waits=summary.rate_limit_waits,
        )
        for line in summary.format_text().splitlines():
            self._logger.info("run_summary_line", line=line)

        if self._notifier is None or not self._notifier.is_available():
            return
        try:
            await self._notifier.send(summary.format_text())
        except Exception as exc:
            self._logger.warning("notify_failed", error=str(exc))
