"""
Forecast reconciler — apply one observation to the forecast store.

Rule:
    legacy observation    → match the first record with the same UTC day
    extended observation  → match the record with the same UTC day AND location
    match                 → overwrite temperature_c and summary in place
    no match              → insert a new record

Each call is one read-modify-write transaction, committed before it returns.
Two concurrent inserts for the same new key collide on the unique
(date, location) index; the loser re-reads once and takes the update branch.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from forecast_service.app.core.errors import PersistenceError
from forecast_service.app.forecasts.models import ForecastRecord
from forecast_service.app.forecasts.observations import (
    ExtendedObservation,
    ForecastKey,
    LegacyObservation,
    key_for,
    location_of,
)
from forecast_service.app.forecasts.store import ForecastStore
from forecast_service.app.forecasts.telemetry import (
    ForecastTelemetry,
    LoggingTelemetry,
    ReconcileOutcome,
)

logger = logging.getLogger(__name__)

AnyObservation = Union[LegacyObservation, ExtendedObservation]


class ForecastReconciler:
    """Stateless between calls; safe to share across concurrent handlers."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        telemetry: Optional[ForecastTelemetry] = None,
    ):
        self._session_factory = session_factory
        self._telemetry = telemetry or LoggingTelemetry()

    async def reconcile(self, observation: AnyObservation) -> None:
        key = key_for(observation)
        self._telemetry.observation_received(observation)

        try:
            try:
                outcome = await self._apply(observation, key)
            except IntegrityError:
                # Another writer inserted the same key first
                logger.info("Concurrent insert for %s, re-reading", key)
                outcome = await self._apply(observation, key)
        except SQLAlchemyError as exc:
            self._telemetry.reconcile_failed(observation, exc)
            raise PersistenceError(
                "reconcile", str(exc), key=str(key),
            ) from exc
        except (OSError, asyncio.TimeoutError) as exc:
            self._telemetry.reconcile_failed(observation, exc)
            raise PersistenceError(
                "reconcile", f"store unreachable: {exc}", key=str(key),
            ) from exc

        self._telemetry.forecast_reconciled(observation, outcome)

    async def _apply(self, observation: AnyObservation, key: ForecastKey) -> ReconcileOutcome:
        async with self._session_factory() as session:
            async with session.begin():
                store = ForecastStore(session)
                existing = await store.find(key)

                if existing is not None:
                    if not key.matches_location and existing.location is not None:
                        logger.warning(
                            "Legacy forecast for %s overwrites record %s at location %r",
                            key.date, existing.id, existing.location,
                        )
                    existing.temperature_c = observation.temperature_c
                    existing.summary = observation.summary
                    await store.update(existing)
                    return ReconcileOutcome.UPDATED

                await store.insert(
                    ForecastRecord(
                        date=key.date,
                        temperature_c=observation.temperature_c,
                        summary=observation.summary,
                        location=location_of(observation),
                    )
                )
                return ReconcileOutcome.INSERTED
