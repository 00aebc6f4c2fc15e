"""
Forecast processing jobs run by the background job manager.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from forecast_service.app.core.errors import PersistenceError
from forecast_service.app.forecasts.models import ForecastRecord
from forecast_service.app.forecasts.store import ForecastStore

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "unknown"


class ForecastProcessor:
    """Read-only passes over the stored forecasts."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _load(self) -> List[ForecastRecord]:
        try:
            async with self._session_factory() as session:
                return await ForecastStore(session).list_all()
        except SQLAlchemyError as exc:
            raise PersistenceError("list forecasts", str(exc)) from exc

    async def process_forecasts(self, job_id: str) -> Dict[str, Any]:
        """Walk every stored forecast and log it."""
        logger.info("Processing forecasts", extra={"job_id": job_id})
        records = await self._load()
        for record in records:
            logger.info(
                "Forecast %s: %s°C %s (%s)",
                record.date, record.temperature_c, record.summary,
                record.location or UNKNOWN_LOCATION,
                extra={"job_id": job_id},
            )
        logger.info("Processed %d forecasts", len(records), extra={"job_id": job_id})
        return {"job_id": job_id, "processed": len(records)}

    async def process_forecasts_by_location(self, job_id: str) -> Dict[str, Any]:
        """Per-location record count and mean temperature."""
        logger.info("Processing forecasts by location", extra={"job_id": job_id})
        records = await self._load()

        temperatures: Dict[str, List[int]] = defaultdict(list)
        for record in records:
            temperatures[record.location or UNKNOWN_LOCATION].append(record.temperature_c)

        locations = {
            location: {
                "count": len(values),
                "mean_temperature_c": round(sum(values) / len(values), 2),
                "min_temperature_c": min(values),
                "max_temperature_c": max(values),
            }
            for location, values in sorted(temperatures.items())
        }
        return {"job_id": job_id, "processed": len(records), "locations": locations}


async def hello_world() -> None:
    """Recurring heartbeat."""
    logger.info("Hello World!")
