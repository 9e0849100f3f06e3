"""Redis fixed-window rate limiting with separate read and write budgets."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from habit_tracker.monitoring import get_metrics
from habit_tracker.redis_client import get_redis
from habit_tracker.responses import error_response

logger = structlog.get_logger()

_EXEMPT_PATHS = frozenset({"/health", "/ready"})
_READ_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


@dataclass(frozen=True)
class Limiter:
    name: str
    requests_per_window: int


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Count requests per client IP and limiter; reads and writes are budgeted separately."""

    def __init__(
        self,
        app: Any,  # noqa: ANN401
        read_requests: int = 100,
        write_requests: int = 30,
        window_seconds: int = 60,
    ) -> None:
        super().__init__(app)
        self.read = Limiter("read", read_requests)
        self.write = Limiter("write", write_requests)
        self.window_seconds = window_seconds

    def limiter_for(self, method: str) -> Limiter:
        return self.read if method.upper() in _READ_METHODS else self.write

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        client = get_redis()
        if client is None or request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        limiter = self.limiter_for(request.method)
        client_ip = request.client.host if request.client else "unknown"
        now = int(time.time())
        window = now // self.window_seconds
        key = f"ratelimit:{limiter.name}:{client_ip}:{window}"

        try:
            pipe = client.pipeline()
            pipe.incr(key)
            pipe.expire(key, self.window_seconds + 1)
            count, _ = await pipe.execute()
        except RedisError as exc:
            # Counters unavailable: serve the request unthrottled
            logger.warning("rate_limit_unavailable", error=str(exc))
            return await call_next(request)

        limit = limiter.requests_per_window
        if int(count) > limit:
            get_metrics().record_throttle(limiter.name)
            logger.warning("rate_limit_exceeded", limiter=limiter.name, client_ip=client_ip, path=request.url.path)
            return error_response(
                429,
                "Rate limit exceeded. Try again later.",
                "RATE_LIMITED",
                details={"limiter": limiter.name},
                headers={
                    "Retry-After": str(self.window_seconds - now % self.window_seconds),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Limit": str(limit),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(max(0, limit - int(count)))
        response.headers["X-RateLimit-Limit"] = str(limit)
        return response
