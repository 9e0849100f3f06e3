"""Liveness, readiness and version endpoints."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from habit_tracker.config import get_settings
from habit_tracker.database import get_session
from habit_tracker.health.checks import ERROR, check_dependencies

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(db: AsyncSession = Depends(get_session)) -> JSONResponse:  # noqa: B008
    """503 while the database is unreachable. A failing Redis only degrades the service."""
    checks = await check_dependencies(db)

    if not checks["database"].ok:
        status, status_code = "unavailable", 503
    elif any(check.status == ERROR for check in checks.values()):
        status, status_code = "degraded", 200
    else:
        status, status_code = "ready", 200

    return JSONResponse(
        status_code=status_code,
        content={"status": status, "checks": {name: check.to_dict() for name, check in checks.items()}},
    )


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {"version": settings.app_version, "environment": settings.environment}
