"""HTTP middleware stack."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from habit_tracker.config import Settings
from habit_tracker.middleware.error_handler import setup_error_handlers
from habit_tracker.middleware.logging import setup_logging
from habit_tracker.middleware.rate_limit import RateLimitMiddleware
from habit_tracker.middleware.request_context import RequestContextMiddleware

# Browsers may only read these from cross-origin responses when exposed
EXPOSED_HEADERS = ["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit", "Content-Disposition"]


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Install logging, error handlers and middleware.

    Starlette runs the last-added middleware outermost. Order from the outside
    in: CORS (so 429s carry CORS headers), request context (so throttled
    requests are counted), rate limiting.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        read_requests=settings.rate_limit_read_requests,
        write_requests=settings.rate_limit_write_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=EXPOSED_HEADERS,
    )
