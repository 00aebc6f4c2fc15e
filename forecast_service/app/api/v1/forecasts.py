"""
FastAPI endpoints for forecasts.

Routes:
    GET  /forecasts                  — List all stored forecasts
    POST /forecast                   — Insert a forecast directly (no reconcile)
    POST /forecast/publish-random    — Publish a random extended observation
    POST /forecast/process           — Enqueue the forecast processing job
    POST /forecast/process2          — Enqueue the per-location processing job
"""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from forecast_service.app.api.schemas import ForecastCreate, ForecastOut
from forecast_service.app.core.database import get_db
from forecast_service.app.core.errors import (
    ForecastServiceError,
    MessageChannelError,
    PersistenceError,
)
from forecast_service.app.forecasts.models import ForecastRecord
from forecast_service.app.forecasts.observations import normalize_date
from forecast_service.app.forecasts.store import ForecastStore
from forecast_service.app.jobs.background_jobs import BackgroundJobManager
from forecast_service.app.jobs.processors import ForecastProcessor
from forecast_service.app.messaging.publisher import ForecastPublisher, random_observation

logger = logging.getLogger(__name__)

router = APIRouter(tags=["forecasts"])


# ── Dependencies ───────────────────────────────────────────────────


def get_publisher(request: Request) -> ForecastPublisher:
    publisher = getattr(request.app.state, "publisher", None)
    if publisher is None:
        raise MessageChannelError("no publisher configured")
    return publisher


def get_job_manager(request: Request) -> BackgroundJobManager:
    if not request.app.state.settings.JOBS_ENABLED:
        raise ForecastServiceError(
            "Background jobs are disabled",
            status_code=503,
            error_code="JOBS_DISABLED",
        )
    return request.app.state.job_manager


def get_processor(request: Request) -> ForecastProcessor:
    return ForecastProcessor(request.app.state.session_factory)


# ── Endpoints ──────────────────────────────────────────────────────


@router.get("/forecasts", response_model=List[ForecastOut], summary="List all forecasts")
async def list_forecasts(db: AsyncSession = Depends(get_db)) -> List[ForecastRecord]:
    try:
        return await ForecastStore(db).list_all()
    except SQLAlchemyError as exc:
        raise PersistenceError("list forecasts", str(exc)) from exc


@router.post("/forecast", response_model=ForecastOut, summary="Insert a forecast")
async def create_forecast(
    body: ForecastCreate,
    db: AsyncSession = Depends(get_db),
) -> ForecastRecord:
    """
    Store the forecast as given. Does not reconcile: a second forecast for an
    existing (date, location) key violates the unique index and fails.
    """
    record = ForecastRecord(
        date=normalize_date(body.date),
        temperature_c=body.temperature_c,
        summary=body.summary,
        location=body.location,
    )
    try:
        await ForecastStore(db).insert(record)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise PersistenceError(
            "insert forecast", str(getattr(exc, "orig", None) or exc),
            date=record.date.isoformat(), location=record.location,
        ) from exc
    return record


@router.post(
    "/forecast/publish-random",
    response_class=PlainTextResponse,
    summary="Publish a random forecast observation",
)
async def publish_random(publisher: ForecastPublisher = Depends(get_publisher)) -> str:
    observation = random_observation()
    await publisher.send(observation)
    return "Published"


@router.post(
    "/forecast/process",
    response_class=PlainTextResponse,
    summary="Enqueue forecast processing",
)
async def process(
    request: Request,
    manager: BackgroundJobManager = Depends(get_job_manager),
    processor: ForecastProcessor = Depends(get_processor),
) -> str:
    logger.info("Processing")
    progress = manager.schedule(
        "process_forecasts",
        processor.process_forecasts,
        delay_seconds=request.app.state.settings.JOB_DELAY_SECONDS,
    )
    return f"Enqueued {progress.task_id}"


@router.post(
    "/forecast/process2",
    response_class=PlainTextResponse,
    summary="Enqueue per-location forecast processing",
)
async def process2(
    request: Request,
    manager: BackgroundJobManager = Depends(get_job_manager),
    processor: ForecastProcessor = Depends(get_processor),
) -> str:
    logger.info("Processing")
    progress = manager.schedule(
        "process_forecasts_by_location",
        processor.process_forecasts_by_location,
        delay_seconds=request.app.state.settings.JOB_DELAY_SECONDS,
    )
    return f"Enqueued {progress.task_id}"
