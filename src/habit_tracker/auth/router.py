"""Authentication router for all /api/auth/* endpoints."""

from __future__ import annotations

import uuid
from datetime import timedelta

import jwt
import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from habit_tracker.auth.dependencies import get_current_user
from habit_tracker.auth.jwt import create_access_token, create_refresh_token, verify_token
from habit_tracker.auth.schemas import (
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from habit_tracker.auth.service import (
    authenticate_user,
    consume_refresh_token,
    delete_refresh_token,
    get_user_by_id,
    hash_token,
    register_user,
    store_refresh_token,
)
from habit_tracker.config import get_settings
from habit_tracker.database import get_session
from habit_tracker.db.models import User
from habit_tracker.errors import AuthenticationError
from habit_tracker.responses import success_response
from habit_tracker.time_utils import utcnow

logger = structlog.get_logger()

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


async def _issue_tokens(db: AsyncSession, user: User, request: Request) -> TokenResponse:
    """Create access + refresh tokens and store the session row."""
    settings = get_settings()
    token_id = str(uuid.uuid4())
    access_token = create_access_token(user.id)
    refresh_token = create_refresh_token(user.id, token_id=token_id)

    await store_refresh_token(
        db,
        user_id=user.id,
        token_id=token_id,
        token_hash=hash_token(refresh_token),
        expires_at=utcnow() + timedelta(days=settings.jwt_refresh_token_expire_days),
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    await db.commit()

    return TokenResponse(
        user=UserResponse.model_validate(user),
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.jwt_access_token_expire_minutes * 60,
    )


@router.post("/register")
async def register(
    body: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Register with email + password."""
    user = await register_user(db, body.name, body.email, body.password, body.timezone)
    tokens = await _issue_tokens(db, user, request)
    return success_response(tokens.dump(), "User registered successfully", status_code=201)


@router.post("/login")
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Login with email + password."""
    user = await authenticate_user(db, body.email, body.password)
    tokens = await _issue_tokens(db, user, request)
    return success_response(tokens.dump(), "Login successful")


@router.post("/refresh")
async def refresh(
    body: RefreshRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Rotate a refresh token: the old session is deleted, a new one is issued."""
    try:
        payload = verify_token(body.refresh_token, expected_type="refresh")
    except jwt.InvalidTokenError as e:
        raise AuthenticationError(str(e) or "Invalid token") from e

    await consume_refresh_token(db, str(payload.get("jti", "")), body.refresh_token)
    user = await get_user_by_id(db, str(payload["sub"]))
    if user is None:
        await db.commit()
        msg = "User not found"
        raise AuthenticationError(msg)

    tokens = await _issue_tokens(db, user, request)
    return success_response(tokens.dump(), "Token refreshed successfully")


@router.post("/logout")
async def logout(
    body: LogoutRequest,
    db: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Delete the session behind a refresh token. Unknown or expired tokens are a no-op."""
    try:
        payload = verify_token(body.refresh_token, expected_type="refresh")
    except jwt.InvalidTokenError:
        return success_response(None, "Logged out successfully")

    if await delete_refresh_token(db, str(payload.get("jti", ""))):
        logger.info("user_logged_out", user_id=payload.get("sub"))
    await db.commit()
    return success_response(None, "Logged out successfully")


@router.get("/me")
async def me(user: User = Depends(get_current_user)) -> JSONResponse:
    """Current user profile."""
    return success_response({"user": UserResponse.model_validate(user).dump()})
