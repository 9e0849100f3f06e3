"""Exception handlers: every failure leaves as the error envelope and is counted."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from habit_tracker.errors import AppError
from habit_tracker.monitoring import get_metrics
from habit_tracker.responses import error_response

logger = structlog.get_logger()

_HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "AUTHENTICATION_ERROR",
    403: "AUTHORIZATION_ERROR",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "RATE_LIMITED",
}


def _record(request: Request, status: int, code: str, message: str) -> None:
    get_metrics().record_error(code, message, status, request.method, request.url.path)


def setup_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        logger.info(
            "request_rejected",
            path=request.url.path,
            method=request.method,
            status=exc.status_code,
            code=exc.code,
            error=exc.message,
        )
        _record(request, exc.status_code, exc.code, exc.message)
        return error_response(exc.status_code, exc.message, exc.code, exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Framework errors such as an unknown route or a wrong method."""
        code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
        _record(request, exc.status_code, code, str(exc.detail))
        return error_response(exc.status_code, str(exc.detail), code, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Schema failures on body, path or query are client errors (400, not 422)."""
        _record(request, 400, "VALIDATION_ERROR", "Validation error")
        return error_response(400, "Validation error", "VALIDATION_ERROR", {"errors": exc.errors()})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        _record(request, 500, "INTERNAL_ERROR", type(exc).__name__)
        return error_response(500, "Internal server error", "INTERNAL_ERROR")
