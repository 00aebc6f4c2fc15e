"""
test_jobs.py — Background job manager, recurring runner and processors.

Run with:
    pytest tests/test_jobs.py -v
"""

from __future__ import annotations

import asyncio
import datetime as dt

from forecast_service.app.forecasts.models import ForecastRecord
from forecast_service.app.forecasts.store import ForecastStore
from forecast_service.app.jobs.background_jobs import (
    BackgroundJobManager,
    JobStatus,
    RecurringJobRunner,
)
from forecast_service.app.jobs.processors import UNKNOWN_LOCATION, ForecastProcessor


async def _succeed(task_id):
    return {"job_id": task_id, "ok": True}


async def _explode(task_id):
    raise RuntimeError("processing broke")


async def _seed(session_factory, rows):
    async with session_factory() as session:
        async with session.begin():
            store = ForecastStore(session)
            for date, temperature, location in rows:
                await store.insert(
                    ForecastRecord(date=date, temperature_c=temperature, summary="x", location=location)
                )


# ═══════════════════════════════════════════════════════════════════════════
# BackgroundJobManager
# ═══════════════════════════════════════════════════════════════════════════

class TestBackgroundJobManager:

    def test_job_completes_with_result(self):
        async def scenario():
            manager = BackgroundJobManager()
            progress = manager.schedule("demo", _succeed)
            assert progress.status == JobStatus.PENDING
            return await manager.wait(progress.task_id)

        progress = asyncio.run(scenario())
        assert progress.status == JobStatus.COMPLETED
        assert progress.result == {"job_id": progress.task_id, "ok": True}
        assert progress.started_at is not None
        assert progress.completed_at >= progress.started_at

    def test_failing_job_recorded(self):
        async def scenario():
            manager = BackgroundJobManager()
            progress = manager.schedule("demo", _explode)
            return await manager.wait(progress.task_id)

        progress = asyncio.run(scenario())
        assert progress.status == JobStatus.FAILED
        assert progress.error == "processing broke"

    def test_delay_is_honoured(self):
        async def scenario():
            manager = BackgroundJobManager()
            progress = manager.schedule("demo", _succeed, delay_seconds=0.05)
            await asyncio.sleep(0)
            status_before = progress.status
            await manager.wait(progress.task_id)
            return status_before, progress

        status_before, progress = asyncio.run(scenario())
        assert status_before == JobStatus.PENDING
        assert progress.status == JobStatus.COMPLETED
        assert progress.scheduled_for - progress.enqueued_at == dt.timedelta(seconds=0.05)

    def test_cancel_pending_job(self):
        async def scenario():
            manager = BackgroundJobManager()
            progress = manager.schedule("demo", _succeed, delay_seconds=60)
            cancelled = await manager.cancel_job(progress.task_id)
            await manager.wait(progress.task_id)
            again = await manager.cancel_job(progress.task_id)
            return cancelled, again, progress

        cancelled, again, progress = asyncio.run(scenario())
        assert cancelled is True
        assert again is False
        assert progress.status == JobStatus.CANCELLED

    def test_cancelled_pending_jobs_leave_running_tasks(self):
        async def scenario():
            manager = BackgroundJobManager()
            # Cancelled before the task first runs
            unstarted = manager.schedule("demo", _succeed, delay_seconds=10)
            await manager.cancel_job(unstarted.task_id)
            # Cancelled while sleeping out its delay
            sleeping = manager.schedule("demo", _succeed, delay_seconds=10)
            await asyncio.sleep(0)
            await manager.cancel_job(sleeping.task_id)
            for progress in (unstarted, sleeping):
                await manager.wait(progress.task_id)
            await asyncio.sleep(0)
            return manager, unstarted, sleeping

        manager, unstarted, sleeping = asyncio.run(scenario())
        assert manager._running_tasks == {}
        for progress in (unstarted, sleeping):
            assert progress.status == JobStatus.CANCELLED
            assert progress.completed_at is not None
            assert progress.result is None

    def test_list_filters_by_status(self):
        async def scenario():
            manager = BackgroundJobManager()
            ok = manager.schedule("demo", _succeed)
            bad = manager.schedule("demo", _explode)
            await manager.wait(ok.task_id)
            await manager.wait(bad.task_id)
            return manager, ok, bad

        manager, ok, bad = asyncio.run(scenario())
        assert len(manager.list_jobs()) == 2
        assert [j.task_id for j in manager.list_jobs(JobStatus.FAILED)] == [bad.task_id]

    def test_cleanup_removes_old_finished_jobs(self):
        async def scenario():
            manager = BackgroundJobManager()
            old = manager.schedule("demo", _succeed)
            recent = manager.schedule("demo", _succeed)
            await manager.wait(old.task_id)
            await manager.wait(recent.task_id)
            old.completed_at -= dt.timedelta(hours=48)
            return manager, manager.cleanup_old_jobs(max_age_hours=24), recent

        manager, removed, recent = asyncio.run(scenario())
        assert removed == 1
        assert [j.task_id for j in manager.list_jobs()] == [recent.task_id]

    def test_shutdown_cancels_outstanding_jobs(self):
        async def scenario():
            manager = BackgroundJobManager()
            progress = manager.schedule("demo", _succeed, delay_seconds=60)
            await manager.shutdown()
            return progress

        assert asyncio.run(scenario()).status == JobStatus.CANCELLED

    def test_task_ids_are_unique(self):
        ids = {BackgroundJobManager.generate_task_id() for _ in range(100)}
        assert len(ids) == 100


# ═══════════════════════════════════════════════════════════════════════════
# RecurringJobRunner
# ═══════════════════════════════════════════════════════════════════════════

class TestRecurringJobRunner:

    def test_runs_on_interval_until_stopped(self):
        calls = []

        async def tick():
            calls.append(1)

        async def scenario():
            runner = RecurringJobRunner()
            job = runner.add_or_update("tick", tick, interval_seconds=0.01)
            await runner.start()
            while job.runs < 3:
                await asyncio.sleep(0.01)
            await runner.stop()
            runs_at_stop = job.runs
            await asyncio.sleep(0.05)
            return job, runs_at_stop

        job, runs_at_stop = asyncio.run(scenario())
        assert job.runs == runs_at_stop
        assert len(calls) == job.runs
        assert job.last_run_at is not None

    def test_failures_counted_and_loop_survives(self):
        async def broken():
            raise RuntimeError("nope")

        async def scenario():
            runner = RecurringJobRunner()
            job = runner.add_or_update("broken", broken, interval_seconds=0.01)
            await runner.start()
            while job.failures < 2:
                await asyncio.sleep(0.01)
            await runner.stop()
            return job

        job = asyncio.run(scenario())
        assert job.failures >= 2
        assert job.runs == 0

    def test_add_or_update_replaces_job(self):
        async def noop():
            return None

        runner = RecurringJobRunner()
        runner.add_or_update("heartbeat", noop, interval_seconds=60)
        runner.add_or_update("heartbeat", noop, interval_seconds=30)
        assert [j.to_dict()["interval_seconds"] for j in runner.jobs] == [30]


# ═══════════════════════════════════════════════════════════════════════════
# ForecastProcessor
# ═══════════════════════════════════════════════════════════════════════════

class TestForecastProcessor:

    ROWS = [
        (dt.date(2024, 1, 1), 4, "Oslo"),
        (dt.date(2024, 1, 2), 9, "Oslo"),
        (dt.date(2024, 1, 1), 15, "Rome"),
        (dt.date(2024, 1, 3), -2, None),
    ]

    def test_process_forecasts_counts_records(self, open_database):
        async def scenario():
            async with open_database() as session_factory:
                await _seed(session_factory, self.ROWS)
                return await ForecastProcessor(session_factory).process_forecasts("job-1")

        assert asyncio.run(scenario()) == {"job_id": "job-1", "processed": 4}

    def test_process_by_location(self, open_database):
        async def scenario():
            async with open_database() as session_factory:
                await _seed(session_factory, self.ROWS)
                return await ForecastProcessor(session_factory).process_forecasts_by_location("job-2")

        result = asyncio.run(scenario())
        assert result["processed"] == 4
        assert result["locations"]["Oslo"] == {
            "count": 2,
            "mean_temperature_c": 6.5,
            "min_temperature_c": 4,
            "max_temperature_c": 9,
        }
        assert result["locations"]["Rome"]["count"] == 1
        assert result["locations"][UNKNOWN_LOCATION]["mean_temperature_c"] == -2

    def test_empty_store(self, open_database):
        async def scenario():
            async with open_database() as session_factory:
                return await ForecastProcessor(session_factory).process_forecasts_by_location("job-3")

        assert asyncio.run(scenario()) == {"job_id": "job-3", "processed": 0, "locations": {}}
