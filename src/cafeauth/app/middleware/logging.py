"""Request logging middleware with trace propagation and HTTP metrics."""

import logging
import re
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from cafeauth.app.config import get_settings
from cafeauth.app.logging import clear_trace_context, set_trace_id
from cafeauth.app.metrics.collector import HTTP_REQUEST_DURATION, HTTP_REQUESTS_TOTAL
from cafeauth.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)

# Replace dynamic IDs with placeholders
_PATH_PATTERNS = [
    (re.compile(r"/api/v1/staff/[0-9A-Za-z]+/status"), "/api/v1/staff/:id/status"),
]

# Known endpoints for metrics (cardinality control)
_KNOWN_ENDPOINTS = frozenset({
    "/api/v1/login",
    "/api/v1/login/cooldown",
    "/api/v1/logout",
    "/api/v1/session/check",
    "/api/v1/session/refresh",
    "/api/v1/password",
    "/api/v1/lockouts",
    "/api/v1/lockouts/unlock",
    "/api/v1/lockouts/reset-all",
    "/api/v1/lockouts/master-unlock",
    "/api/v1/manager/verify",
    "/api/v1/staff",
    "/api/v1/staff/:id/status",
})

_SKIP_PATHS = ("/health", "/metrics")


def _normalize_path(path: str) -> str:
    """Normalize path; unknown paths become "other"."""
    for pattern, replacement in _PATH_PATTERNS:
        path = pattern.sub(replacement, path)
    return path if path in _KNOWN_ENDPOINTS else "other"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request logging with trace ID propagation.

    - Sets trace_id from X-Trace-ID header or generates a new one
    - Logs one canonical line per request, plus a warning for slow requests
    - Records request count and duration metrics
    - Adds X-Trace-ID header to the response
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        trace_id = set_trace_id(request.headers.get("x-trace-id"))
        path = request.url.path

        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                "Request failed",
                extra={
                    "event": LogEvent.REQUEST_FAILED,
                    "method": request.method,
                    "path": path,
                    "duration_ms": (time.monotonic() - start) * 1000,
                    "trace_id": trace_id,
                },
            )
            raise
        finally:
            clear_trace_context()

        duration_seconds = time.monotonic() - start
        duration_ms = duration_seconds * 1000

        if path not in _SKIP_PATHS:
            endpoint = _normalize_path(path)
            HTTP_REQUESTS_TOTAL.labels(
                method=request.method,
                endpoint=endpoint,
                status=str(response.status_code),
            ).inc()
            HTTP_REQUEST_DURATION.labels(
                method=request.method,
                endpoint=endpoint,
            ).observe(duration_seconds)

            logger.info(
                "Request completed",
                extra={
                    "event": LogEvent.REQUEST_COMPLETE,
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": duration_ms,
                    "trace_id": trace_id,
                },
            )

            slow_threshold_ms = get_settings().logging.slow_threshold_ms
            if duration_ms > slow_threshold_ms:
                logger.warning(
                    "Slow request detected",
                    extra={
                        "event": LogEvent.REQUEST_SLOW,
                        "method": request.method,
                        "path": path,
                        "status": response.status_code,
                        "duration_ms": duration_ms,
                        "threshold_ms": slow_threshold_ms,
                        "trace_id": trace_id,
                    },
                )

        response.headers["X-Trace-ID"] = trace_id
        return response
