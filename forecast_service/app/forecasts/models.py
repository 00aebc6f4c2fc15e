"""
ORM model for stored forecasts.

Table: forecasts
─────────────────────────────────────────────────────────────────────────────
| Column        | Type     | Description                                  |
|---------------|----------|----------------------------------------------|
| id            | SERIAL PK| Surrogate key assigned on insert             |
| date          | DATE     | Forecast day (UTC calendar day)              |
| temperature_c | INTEGER  | Temperature °C                               |
| summary       | TEXT     | Short label ("Mild", "Warm", ...)            |
| location      | TEXT     | City / station label, NULL for legacy events |
─────────────────────────────────────────────────────────────────────────────

Constraints:
- UNIQUE (date, coalesce(location, '')) — one record per key, NULL location
  counts as a single distinct value
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, Optional

from sqlalchemy import Date, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from forecast_service.app.core.database import Base

UNIQUE_KEY_INDEX = "uq_forecasts_date_location"


def fahrenheit(temperature_c: int) -> int:
    """Integer °F, truncated toward zero."""
    return 32 + int(temperature_c / 0.5556)


class ForecastRecord(Base):
    """Persisted forecast entry, one per (date, location) key."""

    __tablename__ = "forecasts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    temperature_c: Mapped[int] = mapped_column(Integer, nullable=False)
    summary: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    @property
    def temperature_f(self) -> int:
        return fahrenheit(self.temperature_c)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "temperatureC": self.temperature_c,
            "temperatureF": self.temperature_f,
            "summary": self.summary,
            "location": self.location,
        }

    def __repr__(self) -> str:
        return (
            f"ForecastRecord(id={self.id!r}, date={self.date!r}, "
            f"temperature_c={self.temperature_c!r}, location={self.location!r})"
        )


Index(
    UNIQUE_KEY_INDEX,
    ForecastRecord.date,
    func.coalesce(ForecastRecord.location, ""),
    unique=True,
)
