"""Background scheduler for the weekly org metadata sync.

Wraps APScheduler's AsyncIOScheduler with a single cron job that runs
MetadataSyncService.sync_all_orgs -- by default every Sunday at 02:00 UTC,
keeping custom-object info fresh for the agent. The same fan-out is also
reachable on demand through the API ("sync now").

Exports:
    MetadataSyncScheduler: Async scheduler for the weekly fan-out.
"""

from __future__ import annotations

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from src.orgmeta.metadata.schemas import FanOutResult
from src.orgmeta.metadata.sync import MetadataSyncService

logger = structlog.get_logger(__name__)

JOB_ID = "org_metadata_weekly_sync"


class MetadataSyncScheduler:
    """Lightweight scheduler for the weekly metadata fan-out.

    Job failures are logged and swallowed so one bad run never takes the
    scheduler down; the next weekly run starts from scratch.

    Args:
        sync_service: MetadataSyncService to drive.
        day_of_week: Cron day-of-week (default "sun").
        hour: Hour in UTC (default 2).
        minute: Minute (default 0).
    """

    def __init__(
        self,
        sync_service: MetadataSyncService,
        day_of_week: str = "sun",
        hour: int = 2,
        minute: int = 0,
    ) -> None:
        self._sync_service = sync_service
        self._day_of_week = day_of_week
        self._hour = hour
        self._minute = minute
        self._scheduler: AsyncIOScheduler | None = None
        self._started = False

    @property
    def scheduler(self) -> AsyncIOScheduler | None:
        return self._scheduler

    def configure(self) -> AsyncIOScheduler:
        """Create the scheduler and register the weekly job (idempotent)."""
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler(timezone="UTC")
            self._scheduler.add_job(
                self.run_weekly_sync,
                trigger=CronTrigger(
                    day_of_week=self._day_of_week,
                    hour=self._hour,
                    minute=self._minute,
                    timezone="UTC",
                ),
                id=JOB_ID,
                name="Weekly org metadata sync for all connected orgs",
                misfire_grace_time=3600,
                max_instances=1,
                coalesce=True,
            )
        return self._scheduler

    def start(self) -> None:
        """Start the scheduler. Must be called from a running event loop."""
        if self._started:
            return
        self.configure().start()
        self._started = True
        logger.info(
            "metadata_scheduler.started",
            job=JOB_ID,
            day_of_week=self._day_of_week,
            hour=self._hour,
            minute=self._minute,
        )

    def stop(self) -> None:
        """Shut down the scheduler."""
        if self._scheduler and self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False
            logger.info("metadata_scheduler.stopped")

    async def run_weekly_sync(self) -> FanOutResult | None:
        """Job body: fan out across every org, logging instead of raising."""
        logger.info("metadata_scheduler.weekly_sync_triggered")
        try:
            result = await self._sync_service.sync_all_orgs()
        except Exception:
            logger.error("metadata_scheduler.weekly_sync_failed", exc_info=True)
            return None

        logger.info(
            "metadata_scheduler.weekly_sync_complete",
            synced_orgs=result.synced_orgs,
        )
        return result


__all__ = ["MetadataSyncScheduler"]
