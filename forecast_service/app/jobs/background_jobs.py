"""
Background jobs for the forecast service.

═══════════════════════════════════════════════════════════════════════════
BACKGROUND TASKS
═══════════════════════════════════════════════════════════════════════════

1. DELAYED PROCESSING JOBS
   - Enqueued by POST /forecast/process and /forecast/process2
   - Start after JOB_DELAY_SECONDS, tracked by task ID

2. RECURRING JOBS
   - Named callables run on a fixed interval (the "hello-world" heartbeat)

Everything runs as asyncio tasks inside the API process; job state lives in
memory and is lost on restart.
═══════════════════════════════════════════════════════════════════════════
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

JobFunc = Callable[[str], Awaitable[Optional[Dict[str, Any]]]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════
# Job Status Model
# ═══════════════════════════════════════════════════════════════════════════

class JobStatus(str, Enum):
    """Status of a background job."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


FINISHED = (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


@dataclass
class JobProgress:
    """Progress tracking for a background job."""
    task_id: str
    job_type: str
    status: JobStatus
    message: str
    enqueued_at: datetime
    scheduled_for: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    result: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        elapsed = None
        if self.started_at:
            elapsed = ((self.completed_at or _utcnow()) - self.started_at).total_seconds()
        return {
            "task_id": self.task_id,
            "job_type": self.job_type,
            "status": self.status.value,
            "message": self.message,
            "enqueued_at": self.enqueued_at.isoformat(),
            "scheduled_for": self.scheduled_for.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "elapsed_seconds": elapsed,
            "error": self.error,
            "result": self.result,
        }


# ═══════════════════════════════════════════════════════════════════════════
# Job Manager
# ═══════════════════════════════════════════════════════════════════════════

class BackgroundJobManager:
    """
    Schedules and tracks one-off background jobs.

    Usage:
        manager = BackgroundJobManager()

        progress = manager.schedule(
            "process_forecasts", processor.process_forecasts, delay_seconds=1.0,
        )

        # Check progress
        manager.get_progress(progress.task_id).status

        # List all jobs
        jobs = manager.list_jobs()
    """

    def __init__(self):
        self._jobs: Dict[str, JobProgress] = {}
        self._running_tasks: Dict[str, asyncio.Task] = {}

    @staticmethod
    def generate_task_id() -> str:
        return uuid.uuid4().hex

    def get_progress(self, task_id: str) -> Optional[JobProgress]:
        return self._jobs.get(task_id)

    def list_jobs(self, status: Optional[JobStatus] = None) -> List[JobProgress]:
        """List all jobs, newest first, optionally filtered by status."""
        jobs = list(self._jobs.values())
        if status:
            jobs = [j for j in jobs if j.status == status]
        return sorted(jobs, key=lambda j: j.enqueued_at, reverse=True)

    def schedule(
        self,
        job_type: str,
        func: JobFunc,
        delay_seconds: float = 0.0,
        task_id: Optional[str] = None,
    ) -> JobProgress:
        """
        Run ``func(task_id)`` after ``delay_seconds``.

        Must be called from a running event loop.
        """
        task_id = task_id or self.generate_task_id()
        now = _utcnow()

        progress = JobProgress(
            task_id=task_id,
            job_type=job_type,
            status=JobStatus.PENDING,
            message=f"Scheduled {job_type} in {delay_seconds:g}s",
            enqueued_at=now,
            scheduled_for=now + timedelta(seconds=delay_seconds),
        )
        self._jobs[task_id] = progress

        async def run_job():
            try:
                if delay_seconds > 0:
                    await asyncio.sleep(delay_seconds)
                progress.status = JobStatus.RUNNING
                progress.started_at = _utcnow()
                progress.message = f"Running {job_type}"
                progress.result = await func(task_id)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(
                    "Job %s failed", task_id,
                    extra={"job_id": task_id, "job_type": job_type},
                )
                progress.status = JobStatus.FAILED
                progress.error = str(e)
                progress.message = f"{job_type} failed"
            else:
                progress.status = JobStatus.COMPLETED
                progress.message = f"{job_type} completed"
            finally:
                progress.completed_at = progress.completed_at or _utcnow()

        task = asyncio.create_task(run_job())
        # A task cancelled before its first step never enters run_job's body
        task.add_done_callback(lambda _: self._running_tasks.pop(task_id, None))
        self._running_tasks[task_id] = task
        logger.info(
            "Enqueued %s job %s", job_type, task_id,
            extra={"job_id": task_id, "job_type": job_type},
        )
        return progress

    async def wait(self, task_id: str) -> Optional[JobProgress]:
        """Wait for a job to finish (returns immediately if it already has)."""
        task = self._running_tasks.get(task_id)
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        return self._jobs.get(task_id)

    async def cancel_job(self, task_id: str) -> bool:
        """Cancel a pending or running job."""
        task = self._running_tasks.get(task_id)
        progress = self._jobs.get(task_id)

        if not task or not progress:
            return False

        if progress.status in FINISHED:
            return False

        task.cancel()
        progress.status = JobStatus.CANCELLED
        progress.completed_at = _utcnow()
        progress.message = "Job cancelled"

        return True

    def cleanup_old_jobs(self, max_age_hours: int = 24) -> int:
        """Remove old completed/failed jobs. Returns count removed."""
        cutoff = _utcnow() - timedelta(hours=max_age_hours)
        to_remove = [
            task_id for task_id, job in self._jobs.items()
            if job.status in FINISHED and job.completed_at and job.completed_at < cutoff
        ]

        for task_id in to_remove:
            del self._jobs[task_id]
            self._running_tasks.pop(task_id, None)

        return len(to_remove)

    async def shutdown(self) -> None:
        """Cancel everything still pending or running."""
        for task_id in list(self._running_tasks):
            await self.cancel_job(task_id)
        tasks = list(self._running_tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._running_tasks.clear()


# ═══════════════════════════════════════════════════════════════════════════
# Recurring Jobs
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class RecurringJob:
    name: str
    func: Callable[[], Awaitable[Any]]
    interval_seconds: float
    runs: int = 0
    failures: int = 0
    last_run_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "interval_seconds": self.interval_seconds,
            "runs": self.runs,
            "failures": self.failures,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
        }


class RecurringJobRunner:
    """
    Runs named jobs on a fixed interval.

    Usage:
        runner = RecurringJobRunner()
        runner.add_or_update("hello-world", hello_world, interval_seconds=60)

        await runner.start()
        ...
        await runner.stop()
    """

    def __init__(self):
        self._jobs: Dict[str, RecurringJob] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._running = False

    @property
    def jobs(self) -> List[RecurringJob]:
        return list(self._jobs.values())

    def add_or_update(
        self,
        name: str,
        func: Callable[[], Awaitable[Any]],
        interval_seconds: float,
    ) -> RecurringJob:
        """Register a job; replacing an existing one restarts its timer."""
        job = RecurringJob(name=name, func=func, interval_seconds=interval_seconds)
        self._jobs[name] = job
        if self._running:
            self._restart(name)
        return job

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        for name in self._jobs:
            self._restart(name)
        logger.info("Recurring job runner started (%d jobs)", len(self._jobs))

    async def stop(self) -> None:
        self._running = False
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("Recurring job runner stopped")

    def _restart(self, name: str) -> None:
        existing = self._tasks.pop(name, None)
        if existing is not None:
            existing.cancel()
        self._tasks[name] = asyncio.create_task(self._loop(self._jobs[name]))

    async def _loop(self, job: RecurringJob) -> None:
        while self._running:
            await asyncio.sleep(job.interval_seconds)
            job.last_run_at = _utcnow()
            try:
                await job.func()
                job.runs += 1
            except asyncio.CancelledError:
                raise
            except Exception:
                job.failures += 1
                logger.exception("Recurring job %s failed", job.name)
