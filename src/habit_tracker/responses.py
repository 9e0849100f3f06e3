"""Uniform JSON response envelope.

Success: ``{"success": true, "message", "data", "meta": {"timestamp", "pagination"?}}``
Error:   ``{"success": false, "error": {"message", "code"?, "details"?}, "meta": {"timestamp"}}``
"""

from __future__ import annotations

import math
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from habit_tracker.time_utils import utcnow


def _meta(**extra: Any) -> dict[str, Any]:
    meta: dict[str, Any] = {"timestamp": utcnow().isoformat()}
    meta.update({k: v for k, v in extra.items() if v is not None})
    return meta


def pagination_meta(page: int, limit: int, total: int) -> dict[str, int]:
    """Pagination block for list endpoints."""
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit > 0 else 0,
    }


def success_response(
    data: Any = None,
    message: str | None = None,
    status_code: int = 200,
    pagination: dict[str, int] | None = None,
) -> JSONResponse:
    """Wrap a payload in the success envelope."""
    body: dict[str, Any] = {
        "success": True,
        "message": message,
        "data": data,
        "meta": _meta(pagination=pagination),
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def paginated_response(
    items: list[Any],
    page: int,
    limit: int,
    total: int,
    message: str | None = None,
) -> JSONResponse:
    """Success envelope whose data is a list plus ``meta.pagination``."""
    return success_response(items, message, pagination=pagination_meta(page, limit, total))


def error_response(
    status_code: int,
    message: str,
    code: str | None = None,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Wrap an error in the error envelope."""
    error: dict[str, Any] = {"message": message}
    if code is not None:
        error["code"] = code
    if details is not None:
        error["details"] = details
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"success": False, "error": error, "meta": _meta()}),
        headers=headers,
    )
