"""
Event intake — one reconcile per inbound observation message.

``handle_message`` returns only after the write is committed; any exception
means the message must not be acknowledged.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from forecast_service.app.core.errors import ValidationError
from forecast_service.app.forecasts.observations import (
    ExtendedObservation,
    LegacyObservation,
)
from forecast_service.app.forecasts.reconciler import ForecastReconciler
from forecast_service.app.forecasts.telemetry import ForecastTelemetry, LoggingTelemetry
from forecast_service.app.messaging.codec import decode_observation

logger = logging.getLogger(__name__)


class ForecastEventIntake:

    def __init__(
        self,
        reconciler: ForecastReconciler,
        telemetry: Optional[ForecastTelemetry] = None,
    ):
        self.reconciler = reconciler
        self.telemetry = telemetry or LoggingTelemetry()

    async def handle_message(self, raw: Union[bytes, str]) -> None:
        try:
            observation = decode_observation(raw)
        except ValidationError as exc:
            self.telemetry.message_rejected(exc)
            raise
        await self.handle(observation)

    async def handle(self, observation: Union[LegacyObservation, ExtendedObservation]) -> None:
        await self.reconciler.reconcile(observation)
