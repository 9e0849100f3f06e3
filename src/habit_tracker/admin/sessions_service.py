"""Active login sessions (refresh-token rows) and their revocation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.orm import joinedload

from habit_tracker.db.models import RefreshToken, User
from habit_tracker.errors import NotFoundError
from habit_tracker.time_utils import isoformat_utc, utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def get_active_sessions(db: AsyncSession) -> list[dict[str, Any]]:
    """Unexpired sessions, newest first, with their owner."""
    stmt = (
        select(RefreshToken)
        .options(joinedload(RefreshToken.user))
        .where(RefreshToken.expires_at > utcnow())
        .order_by(RefreshToken.created_at.desc(), RefreshToken.id.asc())
    )
    sessions = (await db.execute(stmt)).scalars().all()
    return [
        {
            "id": s.id,
            "createdAt": isoformat_utc(s.created_at),
            "expiresAt": isoformat_utc(s.expires_at),
            "user": {"id": s.user.id, "name": s.user.name, "email": s.user.email},
        }
        for s in sessions
    ]


async def revoke_session(db: AsyncSession, session_id: str) -> None:
    """
    Delete one session. Its refresh token stops working immediately.

    Raises:
        NotFoundError: If the session does not exist (including already revoked).
    """
    session = (await db.execute(select(RefreshToken).where(RefreshToken.id == session_id))).scalar_one_or_none()
    if session is None:
        raise NotFoundError("Session", session_id)

    await db.delete(session)
    await db.commit()
    logger.info("session_revoked", session_id=session_id, user_id=session.user_id)


async def revoke_all_user_sessions(db: AsyncSession, user_id: str) -> int:
    """
    Delete every session of a user. Returns the number deleted (may be 0).

    Raises:
        NotFoundError: If the user does not exist.
    """
    user = (await db.execute(select(User.id).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        raise NotFoundError("User", user_id)

    result = await db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
    await db.commit()
    count = result.rowcount or 0
    logger.info("user_sessions_revoked", user_id=user_id, revoked_count=count)
    return count
