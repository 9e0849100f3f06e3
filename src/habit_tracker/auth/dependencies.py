"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from habit_tracker.auth.jwt import verify_token
from habit_tracker.auth.service import get_user_by_id
from habit_tracker.database import get_session
from habit_tracker.db.models import User
from habit_tracker.errors import AuthenticationError, AuthorizationError

# auto_error=False: a missing header must be a 401 in our envelope, not Starlette's 403
_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Extract and verify the access token, return the User.

    Raises AuthenticationError (401) on any failure.
    """
    if credentials is None:
        msg = "Authentication required - No token provided"
        raise AuthenticationError(msg)
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise AuthenticationError(str(e) or "Invalid token") from e

    user = await get_user_by_id(db, str(payload["sub"]))
    if user is None:
        msg = "User not found"
        raise AuthenticationError(msg)
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Admin gate for /api/admin/* routes (403 for regular users)."""
    if not user.is_admin:
        msg = "Admin access required"
        raise AuthorizationError(msg)
    return user
