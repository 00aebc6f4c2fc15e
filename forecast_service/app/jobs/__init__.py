"""
In-process background jobs: delayed forecast processing and recurring
heartbeat jobs.
"""

from .background_jobs import (
    BackgroundJobManager,
    JobProgress,
    JobStatus,
    RecurringJob,
    RecurringJobRunner,
)
from .processors import ForecastProcessor, hello_world

__all__ = [
    "BackgroundJobManager",
    "JobProgress",
    "JobStatus",
    "RecurringJob",
    "RecurringJobRunner",
    "ForecastProcessor",
    "hello_world",
]
