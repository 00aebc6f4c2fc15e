"""
Observability collaborator for forecast processing.

The reconciler and the event intake receive a ``ForecastTelemetry`` instance
instead of reaching for module-level counters or loggers.

    LoggingTelemetry      log sink only
    PrometheusTelemetry   log sink + prometheus-client counters
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from prometheus_client import CollectorRegistry, Counter

from forecast_service.app.forecasts.observations import location_of


class ReconcileOutcome(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"


class ForecastTelemetry:
    """Interface: every hook is a no-op apart from the shared logger."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("forecast_service.telemetry")

    def observation_received(self, observation) -> None:
        pass

    def forecast_reconciled(self, observation, outcome: ReconcileOutcome) -> None:
        pass

    def reconcile_failed(self, observation, error: BaseException) -> None:
        pass

    def message_rejected(self, error: BaseException) -> None:
        pass


class LoggingTelemetry(ForecastTelemetry):
    """Writes one log line per event."""

    def observation_received(self, observation) -> None:
        self.logger.info(
            "Received forecast event: %s %s %s %s",
            observation.date, observation.temperature_c,
            observation.summary, location_of(observation) or "-",
            extra={
                "forecast_date": observation.forecast_date.isoformat(),
                "location": location_of(observation),
                "temperature_c": observation.temperature_c,
                "variant": observation.kind,
            },
        )

    def forecast_reconciled(self, observation, outcome: ReconcileOutcome) -> None:
        verb = "Added new" if outcome is ReconcileOutcome.INSERTED else "Updated"
        self.logger.info(
            "%s forecast for %s", verb, observation.forecast_date,
            extra={
                "forecast_date": observation.forecast_date.isoformat(),
                "location": location_of(observation),
                "outcome": outcome.value,
            },
        )

    def reconcile_failed(self, observation, error: BaseException) -> None:
        self.logger.error(
            "Failed to reconcile forecast for %s: %s",
            observation.forecast_date, error,
            extra={"forecast_date": observation.forecast_date.isoformat()},
        )

    def message_rejected(self, error: BaseException) -> None:
        self.logger.warning("Rejected forecast message: %s", error)


class PrometheusTelemetry(LoggingTelemetry):
    """
    Log sink plus counters, registered in a private ``CollectorRegistry``
    so several app instances (tests) can coexist in one process.
    """

    def __init__(
        self,
        prefix: str = "api",
        registry: Optional[CollectorRegistry] = None,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(logger)
        self.registry = registry or CollectorRegistry()
        self.processing = Counter(
            f"{prefix}_forecast_processing",
            "Number of forecasts processed",
            registry=self.registry,
        )
        self.reconciled = Counter(
            f"{prefix}_forecast_reconciled",
            "Forecasts written, by outcome",
            ["outcome"],
            registry=self.registry,
        )
        self.failures = Counter(
            f"{prefix}_forecast_failures",
            "Forecast observations that could not be stored",
            ["reason"],
            registry=self.registry,
        )

    def observation_received(self, observation) -> None:
        self.processing.inc()
        super().observation_received(observation)

    def forecast_reconciled(self, observation, outcome: ReconcileOutcome) -> None:
        self.reconciled.labels(outcome=outcome.value).inc()
        super().forecast_reconciled(observation, outcome)

    def reconcile_failed(self, observation, error: BaseException) -> None:
        self.failures.labels(reason="persistence").inc()
        super().reconcile_failed(observation, error)

    def message_rejected(self, error: BaseException) -> None:
        self.failures.labels(reason="validation").inc()
        super().message_rejected(error)
