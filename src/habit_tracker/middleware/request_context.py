"""Per-request context: request id, structlog bindings and request counters."""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from habit_tracker.monitoring import get_metrics

logger = structlog.get_logger()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Echo or mint ``X-Request-Id`` and record method, status and duration."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        metrics = get_metrics()
        metrics.request_started()
        started = time.perf_counter()
        # Unhandled exceptions propagate past here and become 500s
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            duration_ms = (time.perf_counter() - started) * 1000
            metrics.request_finished(request.method, status_code, duration_ms)
            logger.debug(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status=status_code,
                duration_ms=round(duration_ms, 1),
            )

        response.headers["X-Request-Id"] = request_id
        return response
