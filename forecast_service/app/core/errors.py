"""
Error taxonomy for the forecast service and its FastAPI handlers.

    ForecastServiceError      500  INTERNAL_ERROR                base class
    ├── PersistenceError      500  PERSISTENCE_ERROR             store unreachable / write rejected
    ├── ValidationError       422  VALIDATION_ERROR              malformed observation or input
    ├── NotFoundError         404  NOT_FOUND                     unknown job id
    └── MessageChannelError   503  MESSAGE_CHANNEL_UNAVAILABLE   Kafka off or send failed

Every error renders as:

    {"error": {"code": ..., "message": ..., "status": ..., "details": {...}}}

with the request path and method added outside production.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from forecast_service.app.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class ForecastServiceError(Exception):
    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "code": self.error_code,
            "message": self.message,
            "status": self.status_code,
        }
        if self.details:
            body["details"] = self.details
        return body


class PersistenceError(ForecastServiceError):
    error_code = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, message: str = "", **details: Any):
        super().__init__(
            f"Persistence failed during {operation}: {message}",
            details={"operation": operation, **details},
        )


class ValidationError(ForecastServiceError):
    """Raised before anything reaches the store."""
    status_code = 422
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, field: Optional[str] = None, **details: Any):
        if field:
            details["field"] = field
        super().__init__(message, details=details)


class NotFoundError(ForecastServiceError):
    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str, **identifiers: Any):
        super().__init__(f"{resource} not found", details={"resource": resource, **identifiers})


class MessageChannelError(ForecastServiceError):
    status_code = 503
    error_code = "MESSAGE_CHANNEL_UNAVAILABLE"

    def __init__(self, message: str = "", **details: Any):
        super().__init__(f"Message channel unavailable: {message}", details=details)


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI, config: Optional[Settings] = None) -> None:
    config = config or default_settings

    def respond(request: Request, status_code: int, error: Dict[str, Any]) -> JSONResponse:
        if not config.is_production:
            error = {**error, "path": request.url.path, "method": request.method}
        return JSONResponse(status_code=status_code, content={"error": error})

    @app.exception_handler(ForecastServiceError)
    async def handle_service_error(request: Request, exc: ForecastServiceError):
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(level, "%s: %s", exc.error_code, exc.message, extra={"status_code": exc.status_code})
        return respond(request, exc.status_code, exc.to_dict())

    @app.exception_handler(ValueError)
    async def handle_value_error(request: Request, exc: ValueError):
        logger.warning("Rejected input: %s", exc)
        return respond(request, 422, ValidationError(str(exc)).to_dict())

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical("Unhandled %s on %s", type(exc).__name__, request.url.path, exc_info=exc)
        error = ForecastServiceError(str(exc) if config.DEBUG else "Internal server error")
        if config.DEBUG:
            error.details = {"traceback": traceback.format_exception(type(exc), exc, exc.__traceback__)}
        return respond(request, 500, error.to_dict())
