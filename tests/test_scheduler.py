"""Tests for the weekly metadata sync scheduler."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

from apscheduler.triggers.cron import CronTrigger

from src.orgmeta.metadata.scheduler import JOB_ID, MetadataSyncScheduler
from src.orgmeta.metadata.schemas import FanOutResult


def _service(**kwargs) -> MagicMock:
    service = MagicMock()
    service.sync_all_orgs = AsyncMock(**kwargs)
    return service


class TestMetadataSyncScheduler:
    def test_registers_single_weekly_job(self):
        scheduler = MetadataSyncScheduler(_service()).configure()

        jobs = scheduler.get_jobs()
        assert [job.id for job in jobs] == [JOB_ID]
        trigger = jobs[0].trigger
        assert isinstance(trigger, CronTrigger)
        fields = {f.name: str(f) for f in trigger.fields}
        assert fields["day_of_week"] == "sun"
        assert fields["hour"] == "2"
        assert fields["minute"] == "0"
        assert str(trigger.timezone) == "UTC"

    def test_configure_is_idempotent(self):
        sync_scheduler = MetadataSyncScheduler(_service())
        assert sync_scheduler.configure() is sync_scheduler.configure()
        assert len(sync_scheduler.scheduler.get_jobs()) == 1

    def test_custom_schedule(self):
        scheduler = MetadataSyncScheduler(_service(), day_of_week="wed", hour=5, minute=30).configure()
        fields = {f.name: str(f) for f in scheduler.get_job(JOB_ID).trigger.fields}
        assert (fields["day_of_week"], fields["hour"], fields["minute"]) == ("wed", "5", "30")

    async def test_run_weekly_sync_returns_result(self):
        result = FanOutResult(synced_orgs=3)
        service = _service(return_value=result)

        assert await MetadataSyncScheduler(service).run_weekly_sync() is result
        service.sync_all_orgs.assert_awaited_once()

    async def test_run_weekly_sync_swallows_errors(self):
        service = _service(side_effect=RuntimeError("database down"))

        assert await MetadataSyncScheduler(service).run_weekly_sync() is None

    async def test_start_and_stop(self):
        sync_scheduler = MetadataSyncScheduler(_service())

        sync_scheduler.start()
        assert sync_scheduler.scheduler.running
        sync_scheduler.stop()
        sync_scheduler.stop()
