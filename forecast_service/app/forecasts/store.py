"""
Forecast store — query and mutation helpers over an AsyncSession.

The store never commits; transaction boundaries belong to the caller
(the reconciler or the request-scoped session).
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from forecast_service.app.forecasts.models import ForecastRecord
from forecast_service.app.forecasts.observations import ForecastKey

logger = logging.getLogger(__name__)


class ForecastStore:
    """Forecast table access bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_date(self, date: dt.date) -> Optional[ForecastRecord]:
        """First record (lowest id) for ``date``, whatever its location."""
        result = await self.session.execute(
            select(ForecastRecord)
            .where(ForecastRecord.date == date)
            .order_by(ForecastRecord.id)
            .limit(1)
        )
        return result.scalars().first()

    async def find_by_date_and_location(
        self, date: dt.date, location: str,
    ) -> Optional[ForecastRecord]:
        result = await self.session.execute(
            select(ForecastRecord)
            .where(ForecastRecord.date == date, ForecastRecord.location == location)
            .order_by(ForecastRecord.id)
            .limit(1)
        )
        return result.scalars().first()

    async def find(self, key: ForecastKey) -> Optional[ForecastRecord]:
        if key.matches_location:
            return await self.find_by_date_and_location(key.date, key.location)
        return await self.find_by_date(key.date)

    async def insert(self, record: ForecastRecord) -> ForecastRecord:
        self.session.add(record)
        await self.session.flush()
        logger.debug("Inserted forecast %r", record)
        return record

    async def update(self, record: ForecastRecord) -> None:
        self.session.add(record)
        await self.session.flush()

    async def list_all(self) -> List[ForecastRecord]:
        result = await self.session.execute(
            select(ForecastRecord).order_by(ForecastRecord.date, ForecastRecord.id)
        )
        return list(result.scalars().all())
