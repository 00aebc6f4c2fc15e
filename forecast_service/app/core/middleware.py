"""
Request middleware: correlation ID, timing and one access log line per call.

Health/metrics/docs traffic is served without the access line so probes do
not drown the forecast requests.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from forecast_service.app.core.logging_config import log_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
UNLOGGED_PATHS = ("/docs", "/redoc", "/openapi.json", "/favicon.ico", "/metrics", "/health")


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:16]
        path = request.url.path
        quiet = path.startswith(UNLOGGED_PATHS)

        with log_context(
            request_id=request_id,
            client_ip=request.client.host if request.client else None,
            method=request.method,
            endpoint=path,
        ):
            started = time.monotonic()
            try:
                response = await call_next(request)
            except Exception:
                logger.exception(
                    "%s %s failed after %.1fms", request.method, path,
                    (time.monotonic() - started) * 1000,
                    extra={"status_code": 500},
                )
                raise

            elapsed_ms = (time.monotonic() - started) * 1000
            response.headers[REQUEST_ID_HEADER] = request_id
            response.headers["X-Process-Time"] = f"{elapsed_ms:.1f}ms"

            if not quiet or response.status_code >= 500:
                logger.log(
                    logging.WARNING if response.status_code >= 400 else logging.INFO,
                    "%s %s %d %.1fms", request.method, path, response.status_code, elapsed_ms,
                    extra={"status_code": response.status_code, "duration_ms": round(elapsed_ms, 1)},
                )
        return response
