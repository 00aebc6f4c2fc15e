"""
FastAPI application entry point.

Run with:
    uvicorn forecast_service.app.main:app --reload --port 8000

Or through the CLI (``--migrate`` applies migrations and exits):
    forecast-api
    forecast-api --migrate
"""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

# ── Core infrastructure ──
from forecast_service.app.core.config import Settings, get_settings
from forecast_service.app.core.database import (
    build_engine,
    build_session_factory,
    close_db,
    init_db,
)
from forecast_service.app.core.errors import register_error_handlers
from forecast_service.app.core.health import run_health_check
from forecast_service.app.core.logging_config import get_logger, setup_logging
from forecast_service.app.core.middleware import RequestLoggingMiddleware
from forecast_service.app.core.migrations import run_migrations

# ── Domain ──
from forecast_service.app.forecasts.reconciler import ForecastReconciler
from forecast_service.app.forecasts.telemetry import LoggingTelemetry, PrometheusTelemetry
from forecast_service.app.jobs.background_jobs import BackgroundJobManager, RecurringJobRunner
from forecast_service.app.jobs.processors import hello_world
from forecast_service.app.messaging.intake import ForecastEventIntake
from forecast_service.app.messaging.kafka_consumer import KafkaForecastConsumer
from forecast_service.app.messaging.publisher import ForecastPublisher, KafkaForecastPublisher

# ── API routers ──
from forecast_service.app.api.v1.forecasts import router as forecast_router
from forecast_service.app.api.v1.jobs import router as jobs_router

logger = get_logger(__name__)


def create_app(
    config: Optional[Settings] = None,
    publisher: Optional[ForecastPublisher] = None,
) -> FastAPI:
    """Build the application; ``publisher`` overrides the Kafka producer."""
    config = config or get_settings()

    # ── Application lifespan (startup / shutdown) ──

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting %s v%s [%s]",
            config.APP_NAME, config.APP_VERSION, config.ENVIRONMENT,
        )
        engine = build_engine(config)
        if config.DATABASE_CREATE_TABLES:
            await init_db(engine)

        session_factory = build_session_factory(engine)
        telemetry = (
            PrometheusTelemetry(prefix=config.METRICS_PREFIX)
            if config.ENABLE_METRICS else LoggingTelemetry()
        )
        reconciler = ForecastReconciler(session_factory, telemetry)
        intake = ForecastEventIntake(reconciler, telemetry)

        app.state.settings = config
        app.state.engine = engine
        app.state.session_factory = session_factory
        app.state.telemetry = telemetry
        app.state.reconciler = reconciler
        app.state.intake = intake
        app.state.job_manager = BackgroundJobManager()
        app.state.recurring_jobs = RecurringJobRunner()
        app.state.publisher = publisher
        app.state.consumer = None

        if config.JOBS_ENABLED:
            app.state.recurring_jobs.add_or_update(
                "hello-world", hello_world, config.HEARTBEAT_INTERVAL_SECONDS,
            )
            await app.state.recurring_jobs.start()

        if config.KAFKA_ENABLED:
            if app.state.publisher is None:
                try:
                    app.state.publisher = KafkaForecastPublisher(config)
                except Exception as e:
                    logger.error("Kafka publisher unavailable: %s", e)
            app.state.consumer = KafkaForecastConsumer(intake, config)
            await app.state.consumer.start()

        yield

        logger.info("Shutting down %s", config.APP_NAME)
        if app.state.consumer is not None:
            await app.state.consumer.stop()
        if app.state.publisher is not None:
            await app.state.publisher.close()
        await app.state.recurring_jobs.stop()
        await app.state.job_manager.shutdown()
        await close_db(engine)

    # ── Create application ──

    app = FastAPI(
        title=config.APP_NAME,
        description=(
            "Weather forecast service. Stores one forecast per day and "
            "location, fed by forecast observations from a Kafka topic "
            "and by direct writes."
        ),
        version=config.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # ── Middleware stack (order matters — outermost first) ──

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS if not config.CORS_ALLOW_ALL else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    # ── Error handlers ──
    register_error_handlers(app, config)

    # ── Register routers ──
    app.include_router(forecast_router)
    app.include_router(jobs_router)

    # ── Root, metrics & health endpoints ──

    @app.get("/", include_in_schema=False)
    async def root():
        return RedirectResponse(url="/docs")

    if config.ENABLE_METRICS:
        @app.get("/metrics", include_in_schema=False)
        async def metrics(request: Request):
            telemetry = request.app.state.telemetry
            return Response(
                content=generate_latest(telemetry.registry),
                media_type=CONTENT_TYPE_LATEST,
            )

    async def _health_report(request: Request):
        state = request.app.state
        return await run_health_check(
            config,
            state.engine,
            consumer=state.consumer,
            publisher=state.publisher,
            recurring_jobs=state.recurring_jobs,
        )

    @app.get("/health", tags=["health"])
    async def health_check(request: Request):
        """Deep health probe — checks all subsystems."""
        report = await _health_report(request)
        return report.to_dict()

    @app.get("/health/live", tags=["health"])
    async def liveness():
        """Liveness probe — is the process alive?"""
        return {"status": "alive"}

    @app.get("/health/ready", tags=["health"])
    async def readiness(request: Request):
        """Readiness probe — can we serve traffic?"""
        report = await _health_report(request)
        if not report.ready:
            return JSONResponse(status_code=503, content=report.to_dict())
        return report.to_dict()

    return app


# ── CLI ──

def run(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="forecast-api", description="Weather forecast API")
    parser.add_argument(
        "--migrate", action="store_true",
        help="apply database migrations and exit without serving",
    )
    args = parser.parse_args(argv)

    config = get_settings()
    setup_logging(config)

    if args.migrate:
        logging.getLogger(__name__).info("Migrating database")
        run_migrations(config)
        return 0

    import uvicorn

    uvicorn.run(create_app(config), host=config.HOST, port=config.PORT)
    return 0


# ── Initialise logging ──
setup_logging()

app = create_app()


if __name__ == "__main__":
    sys.exit(run())
