"""Frequency-based sync scheduler.

This module provides APScheduler-based scheduling for automatic data source
sync. Two cron jobs drive the work:

- hourly tick (default ``0 * * * *``): sources with ``hourly`` frequency
- daily tick (default ``0 0 * * *``): sources with ``daily`` or ``weekly``
  frequency, each checked against its own cutoff

A source is due when it has never been synced or its last sync is older
than its frequency's cutoff. ``manual`` sources are never picked up here.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from knowledge_sync.config import DEFAULT_DAILY_CRON, DEFAULT_HOURLY_CRON, Settings
from knowledge_sync.models import DataSource, SyncFrequency, utc_now

from .models import SyncResult
from .orchestrator import SyncOrchestrator
from .store import DocumentStore

logger = structlog.get_logger(__name__)

FREQUENCY_WINDOWS: dict[SyncFrequency, timedelta] = {
    SyncFrequency.HOURLY: timedelta(hours=1),
    SyncFrequency.DAILY: timedelta(hours=24),
    SyncFrequency.WEEKLY: timedelta(days=7),
}

# Frequencies checked on each tick; weekly has no tick of its own
TIER_FREQUENCIES: dict[SyncFrequency, tuple[SyncFrequency, ...]] = {
    SyncFrequency.HOURLY: (SyncFrequency.HOURLY,),
    SyncFrequency.DAILY: (SyncFrequency.DAILY, SyncFrequency.WEEKLY),
}


def parse_cron_schedule(cron_expr: str) -> dict:
    """Parse a cron expression into APScheduler CronTrigger kwargs.

    Supports standard 5-field cron format: minute hour day month day_of_week
    Example: "0 * * * *" = every hour on the hour

    Raises:
        ValueError: If cron expression is invalid
    """
    parts = cron_expr.strip().split()
    if len(parts) != 5:
        raise ValueError(
            f"Invalid cron expression '{cron_expr}'. "
            "Expected 5 fields: minute hour day month day_of_week"
        )

    return {
        "minute": parts[0],
        "hour": parts[1],
        "day": parts[2],
        "month": parts[3],
        "day_of_week": parts[4],
    }


def cutoff_for(frequency: SyncFrequency, now: datetime) -> Optional[datetime]:
    """Return the cutoff a source's ``last_synced_at`` must be older than.

    Returns None for ``manual``, which is never due.
    """
    window = FREQUENCY_WINDOWS.get(frequency)
    if window is None:
        return None
    return now - window


def is_due(data_source: DataSource, now: datetime) -> bool:
    """Whether a data source should be synced by the scheduler at ``now``."""
    if not data_source.is_enabled:
        return False
    cutoff = cutoff_for(data_source.sync_frequency, now)
    if cutoff is None:
        return False
    return data_source.last_synced_at is None or data_source.last_synced_at < cutoff


class SyncScheduler:
    """Scheduler for periodic data source sync.

    Uses APScheduler's AsyncIOScheduler with one cron job per tick. Sources
    within a tick run sequentially unless ``max_concurrent`` is raised; a
    failing source never stops the rest of the tick.

    Attributes:
        orchestrator: SyncOrchestrator that performs each run
        store: Store used to select due sources
        hourly_cron: Cron expression for the hourly tick
        daily_cron: Cron expression for the daily tick
        enabled: Whether the scheduler is enabled
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        store: DocumentStore,
        hourly_cron: str = DEFAULT_HOURLY_CRON,
        daily_cron: str = DEFAULT_DAILY_CRON,
        enabled: bool = True,
        max_concurrent: int = 1,
    ) -> None:
        """Initialize the scheduler.

        Args:
            orchestrator: SyncOrchestrator instance
            store: DocumentStore used for due-source selection
            hourly_cron: Cron expression for the hourly tick
            daily_cron: Cron expression for the daily tick
            enabled: Whether to enable scheduled sync
            max_concurrent: Number of sources synced in parallel per tick
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.orchestrator = orchestrator
        self.store = store
        self.hourly_cron = hourly_cron
        self.daily_cron = daily_cron
        self.enabled = enabled
        self.max_concurrent = max_concurrent
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Check if the scheduler is currently running."""
        return self._running

    def _job_id(self, tier: SyncFrequency) -> str:
        return f"sync_{tier.value}"

    def get_next_run_times(self) -> dict[str, Optional[datetime]]:
        """Next scheduled run per tick; empty when the scheduler is not running."""
        if not self._scheduler or not self._running:
            return {}

        next_runs: dict[str, Optional[datetime]] = {}
        for tier in TIER_FREQUENCIES:
            job = self._scheduler.get_job(self._job_id(tier))
            next_runs[tier.value] = job.next_run_time if job else None
        return next_runs

    async def start(self) -> bool:
        """Start the scheduler.

        Returns:
            True if started successfully, False otherwise
        """
        if not self.enabled:
            logger.info("sync_scheduler_disabled")
            return False

        if self._running:
            logger.warning("sync_scheduler_already_running")
            return True

        try:
            triggers = {
                SyncFrequency.HOURLY: CronTrigger(**parse_cron_schedule(self.hourly_cron)),
                SyncFrequency.DAILY: CronTrigger(**parse_cron_schedule(self.daily_cron)),
            }
        except ValueError as e:
            logger.error("sync_scheduler_start_failed", error=str(e))
            return False

        self._scheduler = AsyncIOScheduler()
        for tier, trigger in triggers.items():
            self._scheduler.add_job(
                self.sync_by_frequency,
                trigger=trigger,
                args=[tier],
                id=self._job_id(tier),
                name=f"Data source sync ({tier.value})",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
        self._scheduler.start()
        self._running = True

        logger.info(
            "sync_scheduler_started",
            hourly_cron=self.hourly_cron,
            daily_cron=self.daily_cron,
            next_runs={
                tier: run.isoformat() if run else None
                for tier, run in self.get_next_run_times().items()
            },
        )
        return True

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._scheduler or not self._running:
            return

        # AsyncIOScheduler.shutdown() is synchronous; don't wait on running jobs
        self._scheduler.shutdown(wait=False)
        self._running = False
        logger.info("sync_scheduler_stopped")

    async def get_data_sources_to_sync(
        self, tier: SyncFrequency, now: Optional[datetime] = None
    ) -> list[DataSource]:
        """Return the enabled sources due on the given tick.

        Raises:
            ValueError: If ``tier`` has no tick (weekly, manual)
        """
        frequencies = TIER_FREQUENCIES.get(tier)
        if frequencies is None:
            raise ValueError(f"No scheduler tick for frequency '{tier.value}'")

        now = now or utc_now()
        cutoffs = {frequency: now - FREQUENCY_WINDOWS[frequency] for frequency in frequencies}
        candidates = await self.store.list_due_data_sources(cutoffs)
        # Stores may over-select; the due rule is applied here as well
        return [ds for ds in candidates if ds.sync_frequency in cutoffs and is_due(ds, now)]

    async def sync_by_frequency(self, tier: SyncFrequency) -> dict[str, SyncResult]:
        """Run one tick: sync every due source for the tier.

        Never raises; failures are logged and reported per source.

        Returns:
            Dict mapping data source IDs to their results
        """
        logger.info("scheduled_sync_started", tier=tier.value)
        try:
            due = await self.get_data_sources_to_sync(tier)
        except Exception as e:
            logger.error("scheduled_sync_selection_failed", tier=tier.value, error=str(e))
            return {}

        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def run(data_source: DataSource) -> tuple[str, Optional[SyncResult]]:
            async with semaphore:
                return str(data_source.id), await self._sync_one(data_source)

        outcomes = await asyncio.gather(*(run(ds) for ds in due))
        results = {key: result for key, result in outcomes if result is not None}

        logger.info(
            "scheduled_sync_completed",
            tier=tier.value,
            due=len(due),
            succeeded=sum(1 for r in results.values() if r.success),
            failed=sum(1 for r in results.values() if not r.success),
        )
        return results

    async def _sync_one(self, data_source: DataSource) -> Optional[SyncResult]:
        if self.orchestrator.is_syncing(data_source.id):
            logger.info("scheduled_sync_skipped", data_source_id=str(data_source.id), reason="in_progress")
            return None
        try:
            return await self.orchestrator.sync_data_source(data_source.id, data_source.tenant_id)
        except Exception as e:
            logger.error(
                "scheduled_sync_source_failed",
                data_source_id=str(data_source.id),
                tenant_id=str(data_source.tenant_id),
                error=str(e),
            )
            return SyncResult.failed(str(data_source.id), str(e))

    async def trigger_manual_sync(self, data_source_id: UUID, tenant_id: UUID) -> SyncResult:
        """Sync one source immediately, bypassing the due check.

        Errors from the orchestrator (not found, disabled, in progress)
        propagate to the caller.
        """
        logger.info(
            "manual_sync_triggered",
            data_source_id=str(data_source_id),
            tenant_id=str(tenant_id),
        )
        return await self.orchestrator.sync_data_source(data_source_id, tenant_id)

    async def trigger_tenant_sync(self, tenant_id: UUID) -> dict[str, SyncResult]:
        """Sync every enabled source of a tenant immediately."""
        logger.info("manual_tenant_sync_triggered", tenant_id=str(tenant_id))
        return await self.orchestrator.sync_all(tenant_id)


def create_sync_scheduler(
    orchestrator: SyncOrchestrator,
    store: DocumentStore,
    settings: Optional[Settings] = None,
) -> SyncScheduler:
    """Factory function to create a sync scheduler.

    Args:
        orchestrator: SyncOrchestrator instance
        store: DocumentStore used for due-source selection
        settings: Optional settings supplying cron expressions and limits

    Returns:
        Configured SyncScheduler instance
    """
    if settings is None:
        return SyncScheduler(orchestrator=orchestrator, store=store)
    return SyncScheduler(
        orchestrator=orchestrator,
        store=store,
        hourly_cron=settings.sync_hourly_cron,
        daily_cron=settings.sync_daily_cron,
        enabled=settings.sync_scheduler_enabled,
        max_concurrent=settings.sync_max_concurrent,
    )
