"""
Forecast domain: stored records, inbound observations and the reconciler
that maps one onto the other.
"""

from .models import ForecastRecord, fahrenheit
from .observations import (
    ExtendedObservation,
    ForecastKey,
    LegacyObservation,
    Observation,
    key_for,
    normalize_date,
)
from .store import ForecastStore
from .reconciler import ForecastReconciler
from .telemetry import (
    ForecastTelemetry,
    LoggingTelemetry,
    PrometheusTelemetry,
    ReconcileOutcome,
)

__all__ = [
    "ForecastRecord",
    "fahrenheit",
    "ExtendedObservation",
    "ForecastKey",
    "LegacyObservation",
    "Observation",
    "key_for",
    "normalize_date",
    "ForecastStore",
    "ForecastReconciler",
    "ForecastTelemetry",
    "LoggingTelemetry",
    "PrometheusTelemetry",
    "ReconcileOutcome",
]
