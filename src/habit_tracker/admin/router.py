"""Admin router: /api/admin/users, stats, export and sessions."""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from habit_tracker.admin import export_service, sessions_service, stats_service, users_service
from habit_tracker.admin.csv_format import format_csv
from habit_tracker.admin.schemas import UpdateUserRoleRequest
from habit_tracker.auth.dependencies import require_admin
from habit_tracker.config import get_settings
from habit_tracker.database import get_session
from habit_tracker.db.models import User
from habit_tracker.errors import ValidationError
from habit_tracker.responses import paginated_response, success_response

router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.get("/users")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str | None = Query(None, max_length=100),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Paged user list with habit/log counts."""
    users, total = await users_service.get_all_users(db, page, limit, search, sort_by, sort_order)
    return paginated_response(users, page, limit, total, "Users retrieved successfully")


@router.patch("/users/{user_id}/role")
async def update_user_role(
    user_id: str,
    body: UpdateUserRoleRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Grant or revoke admin rights. Admins cannot demote themselves."""
    user = await users_service.update_user_role(db, user_id, body.is_admin, admin.id)
    return success_response({"user": user}, "User role updated successfully")


@router.get("/users/{user_id}")
async def user_detail(
    user_id: str,
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """One user with counts, habits, recent books and challenges."""
    detail = await users_service.get_user_detail(db, user_id)
    return success_response({"user": detail}, "User detail retrieved successfully")


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


@router.get("/stats")
async def application_stats(db: AsyncSession = Depends(get_session)) -> JSONResponse:
    """Headline totals."""
    stats = await stats_service.get_application_stats(db)
    return success_response({"stats": stats}, "Application stats retrieved successfully")


@router.get("/stats/system")
async def system_stats(db: AsyncSession = Depends(get_session)) -> JSONResponse:
    """Process, dependency and traffic health."""
    stats = await stats_service.get_system_stats(db)
    return success_response({"stats": stats}, "System stats retrieved successfully")


@router.get("/stats/trends")
async def trends(
    days: int = Query(stats_service.DEFAULT_TREND_DAYS, ge=1),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Daily new users, active users and completion rate."""
    max_days = get_settings().trends_max_days
    if days > max_days:
        msg = f"days must be at most {max_days}"
        raise ValidationError(msg, details={"field": "days"})

    series = await stats_service.get_trends(db, days)
    return success_response({"trends": series}, "Trends retrieved successfully")


@router.get("/stats/content")
async def content_breakdown(db: AsyncSession = Depends(get_session)) -> JSONResponse:
    """Grouped content counts and engagement ratios."""
    breakdown = await stats_service.get_content_breakdown(db)
    return success_response({"breakdown": breakdown}, "Content breakdown retrieved successfully")


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


@router.get("/export/{export_type}")
async def export(
    export_type: str,
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Download users, habits or logs as CSV."""
    table = await export_service.export_data(db, export_type)
    filename = f"{export_type}-export-{int(time.time() * 1000)}.csv"
    return Response(
        content=format_csv(table.headers, table.rows),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


@router.get("/sessions")
async def active_sessions(db: AsyncSession = Depends(get_session)) -> JSONResponse:
    """Unexpired sessions with their owners."""
    sessions = await sessions_service.get_active_sessions(db)
    return success_response({"sessions": sessions}, "Active sessions retrieved successfully")


@router.delete("/sessions/user/{user_id}")
async def revoke_user_sessions(
    user_id: str,
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Revoke every session of one user."""
    count = await sessions_service.revoke_all_user_sessions(db, user_id)
    return success_response({"revokedCount": count}, f"Revoked {count} sessions")


@router.delete("/sessions/{session_id}")
async def revoke_session(
    session_id: str,
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Revoke one session."""
    await sessions_service.revoke_session(db, session_id)
    return success_response(None, "Session revoked successfully")
