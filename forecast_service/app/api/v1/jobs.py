"""
Job inspection endpoints.

Routes:
    GET /jobs              — List background jobs (optional ?status=)
    GET /jobs/{task_id}    — Progress of one job
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from forecast_service.app.api.schemas import JobList, JobOut
from forecast_service.app.api.v1.forecasts import get_job_manager
from forecast_service.app.core.errors import NotFoundError
from forecast_service.app.jobs.background_jobs import BackgroundJobManager, JobStatus

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get("", response_model=JobList, summary="List background jobs")
async def list_jobs(
    status: Optional[JobStatus] = None,
    manager: BackgroundJobManager = Depends(get_job_manager),
) -> Dict[str, Any]:
    jobs = [job.to_dict() for job in manager.list_jobs(status)]
    return {"jobs": jobs, "count": len(jobs)}


@router.get("/{task_id}", response_model=JobOut, summary="Get job progress")
async def get_job(
    task_id: str,
    manager: BackgroundJobManager = Depends(get_job_manager),
) -> Dict[str, Any]:
    progress = manager.get_progress(task_id)
    if progress is None:
        raise NotFoundError("Job", task_id=task_id)
    return progress.to_dict()
