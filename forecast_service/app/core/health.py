"""
Health report for the probes in main.py.

    database          SELECT 1 through the pool; failure → unhealthy
    message_channel   consumer thread alive + publisher present; either
                      missing while Kafka is enabled → degraded
    job_scheduler     recurring jobs registered and their run counters

The overall status is the worst component status.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from forecast_service.app.core.config import Settings
from forecast_service.app.core.database import ping_db

logger = logging.getLogger(__name__)

_STARTED = time.monotonic()


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {HealthStatus.HEALTHY: 0, HealthStatus.DEGRADED: 1, HealthStatus.UNHEALTHY: 2}


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    message: str = ""
    latency_ms: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name, "status": self.status.value}
        if self.latency_ms is not None:
            out["latency_ms"] = round(self.latency_ms, 2)
        if self.message:
            out["message"] = self.message
        if self.details:
            out["details"] = self.details
        return out


@dataclass
class HealthReport:
    version: str
    environment: str
    components: List[ComponentHealth] = field(default_factory=list)

    @property
    def status(self) -> HealthStatus:
        return max(
            (c.status for c in self.components),
            key=lambda s: s.severity,
            default=HealthStatus.HEALTHY,
        )

    @property
    def ready(self) -> bool:
        return self.status is not HealthStatus.UNHEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(time.monotonic() - _STARTED, 1),
            "components": [c.to_dict() for c in self.components],
        }


async def check_database(engine: AsyncEngine) -> ComponentHealth:
    comp = ComponentHealth(
        name="database",
        details={"backend": engine.url.get_backend_name(), "database": engine.url.database},
    )
    started = time.monotonic()
    try:
        await ping_db(engine)
    except Exception as exc:
        logger.warning("Database health check failed: %s", exc)
        comp.status = HealthStatus.UNHEALTHY
        comp.message = f"{type(exc).__name__}: {exc}"
    comp.latency_ms = (time.monotonic() - started) * 1000
    return comp


def check_message_channel(
    config: Settings,
    consumer: Optional[Any] = None,
    publisher: Optional[Any] = None,
) -> ComponentHealth:
    comp = ComponentHealth(name="message_channel")
    if not config.KAFKA_ENABLED:
        comp.message = "Kafka disabled"
        return comp

    consuming = consumer is not None and consumer.running
    comp.details = {
        "topic": config.KAFKA_TOPIC,
        "group_id": config.KAFKA_GROUP_ID,
        "consuming": consuming,
        "publishing": publisher is not None,
    }
    if consumer is not None:
        comp.details["acknowledged"] = consumer.acknowledged
        comp.details["redelivered"] = consumer.redelivered
    if not (consuming and publisher is not None):
        comp.status = HealthStatus.DEGRADED
        comp.message = "Kafka enabled but not fully connected"
    return comp


def check_job_scheduler(config: Settings, recurring_jobs: Optional[Any] = None) -> ComponentHealth:
    comp = ComponentHealth(name="job_scheduler")
    if not config.JOBS_ENABLED:
        comp.message = "Background jobs disabled"
        return comp
    jobs = recurring_jobs.jobs if recurring_jobs is not None else []
    comp.message = f"{len(jobs)} recurring job(s) registered"
    comp.details = {"recurring": [job.to_dict() for job in jobs]}
    return comp


async def run_health_check(
    config: Settings,
    engine: AsyncEngine,
    consumer: Optional[Any] = None,
    publisher: Optional[Any] = None,
    recurring_jobs: Optional[Any] = None,
) -> HealthReport:
    return HealthReport(
        version=config.APP_VERSION,
        environment=config.ENVIRONMENT,
        components=[
            await check_database(engine),
            check_message_channel(config, consumer, publisher),
            check_job_scheduler(config, recurring_jobs),
        ],
    )
