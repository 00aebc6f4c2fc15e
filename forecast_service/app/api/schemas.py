"""
Pydantic schemas for the forecast HTTP API.

Field names are camelCase on the wire (``temperatureC``) to match the
message payloads.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ForecastCreate(_CamelModel):
    """Request body for POST /forecast."""
    date: Union[dt.datetime, dt.date] = Field(
        ..., description="Forecast day; timestamps are reduced to their UTC day",
        examples=["2024-01-01"],
    )
    temperature_c: int = Field(..., description="Temperature in °C", examples=[8])
    summary: Optional[str] = Field(default=None, max_length=200, examples=["Mild"])
    location: Optional[str] = Field(default=None, min_length=1, max_length=200, examples=["Oslo"])


class ForecastOut(_CamelModel):
    """A stored forecast."""
    id: int
    date: dt.date
    temperature_c: int
    temperature_f: int
    summary: Optional[str] = None
    location: Optional[str] = None


class JobOut(BaseModel):
    task_id: str
    job_type: str
    status: str
    message: str
    enqueued_at: str
    scheduled_for: str
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    elapsed_seconds: Optional[float] = None
    error: Optional[str] = None
    result: Optional[Dict[str, Any]] = None


class JobList(BaseModel):
    jobs: List[JobOut]
    count: int
