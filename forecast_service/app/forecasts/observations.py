"""
Forecast observations — the two message variants delivered by the channel.

    LegacyObservation    (wire type "ForecastEvent")   date, temperatureC, summary
    ExtendedObservation  (wire type "ForecastEvent2")  ... + location

Both are members of the ``Observation`` tagged union; the ``kind`` field is
the discriminator. Field names are camelCase on the wire and snake_case in
Python.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

LEGACY = "legacy"
EXTENDED = "extended"


def normalize_date(value: Union[dt.datetime, dt.date]) -> dt.date:
    """
    Reduce a timestamp to its UTC calendar day.

    Aware datetimes are converted to UTC first; naive ones are taken as UTC.
    """
    if isinstance(value, dt.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc)
        return value.date()
    return value


class _ObservationBase(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    date: Union[dt.datetime, dt.date]
    temperature_c: int = Field(..., description="Temperature in °C, no enforced range")
    summary: str = Field(..., max_length=200)

    @property
    def forecast_date(self) -> dt.date:
        return normalize_date(self.date)


class LegacyObservation(_ObservationBase):
    """Observation without a location; matched on date alone."""

    kind: Literal["legacy"] = LEGACY


class ExtendedObservation(_ObservationBase):
    """Observation carrying a location; matched on date and location."""

    kind: Literal["extended"] = EXTENDED
    location: str = Field(..., min_length=1, max_length=200)


Observation = Annotated[
    Union[LegacyObservation, ExtendedObservation],
    Field(discriminator="kind"),
]


@dataclass(frozen=True)
class ForecastKey:
    """Lookup key; ``location`` is None when the location plays no part."""

    date: dt.date
    location: Optional[str] = None

    @property
    def matches_location(self) -> bool:
        return self.location is not None

    def __str__(self) -> str:
        if self.location is None:
            return self.date.isoformat()
        return f"{self.date.isoformat()}@{self.location}"


def key_for(observation: Union[LegacyObservation, ExtendedObservation]) -> ForecastKey:
    """Build the lookup key, branching on the observation variant."""
    if isinstance(observation, ExtendedObservation):
        return ForecastKey(observation.forecast_date, observation.location)
    if isinstance(observation, LegacyObservation):
        return ForecastKey(observation.forecast_date)
    raise TypeError(f"Unsupported observation type: {type(observation).__name__}")


def location_of(observation: Union[LegacyObservation, ExtendedObservation]) -> Optional[str]:
    return getattr(observation, "location", None)
