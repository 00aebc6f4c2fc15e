"""
Structured logging configuration.

Provides:
    • JSON lines in production, one object per record
    • Coloured console output everywhere else
    • Scoped log context shared by HTTP requests and Kafka records

Context fields are bound with ``log_context`` and copied onto every record
emitted inside the block, so a reconcile triggered by a Kafka message logs
its topic/partition/offset without the reconciler knowing about Kafka:

    with log_context(topic=record.topic, partition=record.partition, offset=record.offset):
        await intake.handle_message(record.value)
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from forecast_service.app.core.config import Settings, settings as default_settings

_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})

# Record attributes emitted by JSONFormatter when present
EXTRA_FIELDS = (
    "request_id", "client_ip", "method", "endpoint", "status_code", "duration_ms",
    "topic", "partition", "offset",
    "forecast_date", "location", "temperature_c", "outcome", "variant",
    "job_id", "job_type",
)

NOISY_LOGGERS = ("uvicorn.access", "kafka", "aiosqlite", "alembic.runtime.migration")


@contextmanager
def log_context(**fields: Any) -> Iterator[Dict[str, Any]]:
    """Bind ``fields`` for every log record emitted inside the block."""
    merged = {**_log_context.get(), **fields}
    token = _log_context.set(merged)
    try:
        yield merged
    finally:
        _log_context.reset(token)


def current_log_context() -> Dict[str, Any]:
    return dict(_log_context.get())


class ContextFilter(logging.Filter):
    """Copies the bound context onto the record; explicit extras win."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key)) for key in EXTRA_FIELDS if hasattr(record, key)
        )
        if record.exc_info:
            entry["exc_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """``12:00:01 INFO  [req 3f2a9c1e] forecast_service...: message  key=value``"""

    LEVEL_COLOURS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    SHOWN_FIELDS = ("forecast_date", "location", "outcome", "job_id")

    def __init__(self, colour: bool = True):
        super().__init__()
        self.colour = colour

    def _origin(self, record: logging.LogRecord) -> str:
        if getattr(record, "request_id", None):
            return f" [req {record.request_id[:8]}]"
        if getattr(record, "topic", None) is not None:
            return f" [{record.topic}/{record.partition}@{record.offset}]"
        return ""

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8s}"
        if self.colour:
            level = f"{self.LEVEL_COLOURS.get(record.levelname, '')}{level}{self.RESET}"

        line = f"{self.formatTime(record, '%H:%M:%S')} {level}{self._origin(record)} {record.name}: {record.getMessage()}"

        fields = [
            f"{key}={getattr(record, key)}"
            for key in self.SHOWN_FIELDS
            if getattr(record, key, None) is not None
        ]
        if fields:
            line += "  " + " ".join(fields)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(config: Optional[Settings] = None) -> None:
    """Install one stdout handler on the root logger (idempotent)."""
    config = config or default_settings

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ContextFilter())
    if config.is_production:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ConsoleFormatter(colour=sys.stdout.isatty()))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(config.LOG_LEVEL.upper())

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
