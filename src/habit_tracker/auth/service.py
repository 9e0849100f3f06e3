"""
Authentication business logic.

Handles user registration, credential checks and the refresh-token rows that
back each login session.
"""

from __future__ import annotations

import hashlib
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError

from habit_tracker.auth.password import (
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from habit_tracker.db.models import RefreshToken, User
from habit_tracker.errors import AuthenticationError, ConflictError
from habit_tracker.time_utils import ensure_utc, utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


def hash_token(raw_token: str) -> str:
    """SHA-256 of a refresh token; only the hash is stored."""
    return hashlib.sha256(raw_token.encode()).hexdigest()


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Registration & login
# ---------------------------------------------------------------------------


async def register_user(
    db: AsyncSession,
    name: str,
    email: str,
    password: str,
    timezone: str = "UTC",
) -> User:
    """
    Register a new user with email + password.

    Raises:
        PasswordStrengthError: If the password is too weak.
        ConflictError: If the email is already registered.
    """
    validate_password_strength(password)

    if await get_user_by_email(db, email) is not None:
        msg = "User with this email already exists"
        raise ConflictError(msg)

    user = User(
        name=name.strip(),
        email=email.lower().strip(),
        password_hash=hash_password(password),
        timezone=timezone,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        msg = "User with this email already exists"
        raise ConflictError(msg) from e
    logger.info("user_registered", user_id=user.id, email=user.email)
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User:
    """
    Check email + password.

    Raises:
        AuthenticationError: If credentials are invalid.
    """
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        msg = "Invalid email or password"
        raise AuthenticationError(msg)

    if check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        await db.flush()
        logger.info("password_rehashed", user_id=user.id)

    logger.info("user_logged_in", user_id=user.id)
    return user


# ---------------------------------------------------------------------------
# Refresh tokens (sessions)
# ---------------------------------------------------------------------------


async def store_refresh_token(
    db: AsyncSession,
    user_id: str,
    token_id: str,
    token_hash: str,
    expires_at: datetime,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> RefreshToken:
    """Persist a session row for a freshly issued refresh token."""
    token = RefreshToken(
        id=token_id,
        user_id=user_id,
        token_hash=token_hash,
        created_at=utcnow(),
        expires_at=expires_at,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
    )
    db.add(token)
    await db.flush()
    return token


async def get_refresh_token(db: AsyncSession, token_id: str) -> RefreshToken | None:
    """Look up a session row by its JTI."""
    result = await db.execute(select(RefreshToken).where(RefreshToken.id == token_id))
    return result.scalar_one_or_none()


async def consume_refresh_token(db: AsyncSession, token_id: str, raw_token: str) -> RefreshToken:
    """
    Validate a presented refresh token against its session row and delete the row
    (rotation: the caller issues a new session).

    Raises:
        AuthenticationError: If the session was revoked, expired, or the hash differs.
    """
    token = await get_refresh_token(db, token_id)
    if token is None:
        msg = "Session has been revoked"
        raise AuthenticationError(msg)
    if token.token_hash != hash_token(raw_token):
        msg = "Invalid refresh token"
        raise AuthenticationError(msg)
    if ensure_utc(token.expires_at) <= utcnow():
        msg = "Session has expired"
        raise AuthenticationError(msg)

    await db.delete(token)
    await db.flush()
    return token


async def delete_refresh_token(db: AsyncSession, token_id: str) -> bool:
    """Delete one session row. Returns True if it existed."""
    result = await db.execute(delete(RefreshToken).where(RefreshToken.id == token_id))
    await db.flush()
    return bool(result.rowcount)
