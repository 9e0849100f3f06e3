"""Feature flag router: /api/features and /api/admin/features/*."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from habit_tracker.auth.dependencies import get_current_user, require_admin
from habit_tracker.config import get_settings
from habit_tracker.database import get_session
from habit_tracker.db.models import FeatureFlag, FeatureFlagAudit, User
from habit_tracker.errors import ValidationError
from habit_tracker.features import service
from habit_tracker.features.schemas import CreateFeatureFlagRequest, UpdateFeatureFlagRequest
from habit_tracker.responses import paginated_response, success_response
from habit_tracker.time_utils import isoformat_utc

router = APIRouter(prefix="/api", tags=["Feature Flags"])


def _flag_response(flag: FeatureFlag) -> dict[str, Any]:
    return {
        "key": flag.key,
        "name": flag.name,
        "description": flag.description,
        "category": flag.category,
        "enabled": flag.enabled,
        "metadata": flag.flag_metadata,
        "createdAt": isoformat_utc(flag.created_at),
        "updatedAt": isoformat_utc(flag.updated_at),
    }


def _audit_response(entry: FeatureFlagAudit) -> dict[str, Any]:
    return {
        "id": entry.id,
        "flagKey": entry.flag_key,
        "action": entry.action,
        "changes": entry.changes,
        "performedBy": entry.performed_by,
        "createdAt": isoformat_utc(entry.created_at),
    }


@router.get("/features")
async def enabled_features(
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Keys of enabled flags, for any signed-in user."""
    keys = await service.get_enabled_keys(db)
    return success_response({"features": keys}, "Enabled features retrieved successfully")


@router.get("/admin/features")
async def list_flags(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """All flags."""
    flags = await service.get_all(db)
    return success_response(
        {"flags": [_flag_response(f) for f in flags]},
        "Feature flags retrieved successfully",
    )


# Registered before /admin/features/{key} so "audit" is never read as a key
@router.get("/admin/features/audit")
async def audit_log(
    flag_key: str | None = Query(None, alias="flagKey", max_length=64),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Paginated audit log, newest first."""
    max_limit = get_settings().audit_log_max_page_size
    if limit > max_limit:
        msg = f"limit must be at most {max_limit}"
        raise ValidationError(msg, details={"field": "limit"})

    entries, total = await service.get_audit_log(db, flag_key=flag_key, page=page, limit=limit)
    return paginated_response(
        [_audit_response(e) for e in entries],
        page,
        limit,
        total,
        "Audit log retrieved successfully",
    )


@router.post("/admin/features")
async def create_flag(
    body: CreateFeatureFlagRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Create a flag."""
    flag = await service.create_flag(db, body.model_dump(), admin.id)
    return success_response(
        {"flag": _flag_response(flag)},
        f"Feature flag '{flag.key}' created successfully",
        status_code=201,
    )


@router.patch("/admin/features/{key}")
async def update_flag(
    key: str,
    body: UpdateFeatureFlagRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Patch a flag; toggling ``enabled`` alone is audited as TOGGLED."""
    service.validate_flag_key(key)
    flag = await service.update_flag(db, key, body.patch(), admin.id)
    return success_response({"flag": _flag_response(flag)}, f"Feature flag '{key}' updated successfully")


@router.delete("/admin/features/{key}", status_code=204)
async def delete_flag(
    key: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Hard-delete a flag."""
    service.validate_flag_key(key)
    await service.delete_flag(db, key, admin.id)
    return Response(status_code=204)
