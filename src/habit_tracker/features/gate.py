"""Route-level gate on a feature flag."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from habit_tracker.database import get_session
from habit_tracker.errors import AuthorizationError
from habit_tracker.features.service import is_enabled


def require_feature(key: str) -> Callable[..., Awaitable[None]]:
    """Dependency factory: 403 ``FEATURE_DISABLED`` unless flag ``key`` is enabled.

    Usage::

        @router.get("/reports/latest", dependencies=[Depends(require_feature("ai_insights"))])
    """

    async def _check(db: AsyncSession = Depends(get_session)) -> None:
        if not await is_enabled(db, key):
            msg = f"Feature '{key}' is not enabled"
            raise AuthorizationError(msg, code="FEATURE_DISABLED", details={"feature": key})

    return _check
