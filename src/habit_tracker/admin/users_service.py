"""Admin user management: listing, role changes and per-user detail."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select

from habit_tracker.admin.guards import assert_not_self_demotion
from habit_tracker.admin.queries import build_user_list_query
from habit_tracker.db.models import Book, Challenge, Habit, HabitLog, Milestone, User
from habit_tracker.errors import NotFoundError
from habit_tracker.time_utils import isoformat_utc, utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

USER_DETAIL_BOOK_LIMIT = 20
USER_DETAIL_CHALLENGE_LIMIT = 20


def _user_summary(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "isAdmin": user.is_admin,
        "createdAt": isoformat_utc(user.created_at),
    }


async def _count(db: AsyncSession, model: Any, user_id: str) -> int:
    result = await db.execute(select(func.count()).select_from(model).where(model.user_id == user_id))
    return result.scalar_one()


async def get_all_users(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    search: str | None = None,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
) -> tuple[list[dict[str, Any]], int]:
    """Paged user summaries with habit/log counts.

    Returns:
        Tuple of (users on this page, total matching users).
    """
    query = build_user_list_query(search, sort_by, sort_order)

    total = (await db.execute(query.count_statement())).scalar_one()
    rows = (await db.execute(query.statement(page, limit))).all()

    users = [
        {
            **_user_summary(user),
            "counts": {"habits": habit_count, "habitLogs": habit_log_count},
        }
        for user, habit_count, habit_log_count in rows
    ]
    return users, total


async def update_user_role(
    db: AsyncSession,
    user_id: str,
    is_admin: bool,
    requesting_admin_id: str,
) -> dict[str, Any]:
    """
    Grant or revoke admin rights.

    Raises:
        BadRequestError: If an admin tries to demote themselves.
        NotFoundError: If the user does not exist.
    """
    assert_not_self_demotion(requesting_admin_id, user_id, is_admin)

    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        raise NotFoundError("User", user_id)

    user.is_admin = is_admin
    user.updated_at = utcnow()
    await db.commit()

    logger.info("user_role_updated", user_id=user_id, is_admin=is_admin, performed_by=requesting_admin_id)
    return _user_summary(user)


async def get_user_detail(db: AsyncSession, user_id: str) -> dict[str, Any]:
    """
    Summary, related-record counts, all habits, and the latest books and challenges.

    Raises:
        NotFoundError: If the user does not exist.
    """
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        raise NotFoundError("User", user_id)

    counts = {
        "habits": await _count(db, Habit, user_id),
        "habitLogs": await _count(db, HabitLog, user_id),
        "milestones": await _count(db, Milestone, user_id),
        "books": await _count(db, Book, user_id),
        "challenges": await _count(db, Challenge, user_id),
    }

    habits = (
        await db.execute(
            select(Habit).where(Habit.user_id == user_id).order_by(Habit.created_at.desc(), Habit.id.desc())
        )
    ).scalars().all()
    books = (
        await db.execute(
            select(Book)
            .where(Book.user_id == user_id)
            .order_by(Book.created_at.desc(), Book.id.desc())
            .limit(USER_DETAIL_BOOK_LIMIT)
        )
    ).scalars().all()
    challenges = (
        await db.execute(
            select(Challenge)
            .where(Challenge.user_id == user_id)
            .order_by(Challenge.created_at.desc(), Challenge.id.desc())
            .limit(USER_DETAIL_CHALLENGE_LIMIT)
        )
    ).scalars().all()

    return {
        **_user_summary(user),
        "timezone": user.timezone,
        "counts": counts,
        "habits": [
            {
                "id": h.id,
                "name": h.name,
                "color": h.color,
                "frequency": h.frequency,
                "habitType": h.habit_type,
                "isActive": h.is_active,
                "isArchived": h.is_archived,
                "currentStreak": h.current_streak,
                "longestStreak": h.longest_streak,
                "totalCompletions": h.total_completions,
                "createdAt": isoformat_utc(h.created_at),
            }
            for h in habits
        ],
        "books": [
            {
                "id": b.id,
                "title": b.title,
                "author": b.author,
                "status": b.status,
                "rating": b.rating,
                "createdAt": isoformat_utc(b.created_at),
            }
            for b in books
        ],
        "challenges": [
            {
                "id": c.id,
                "name": c.name,
                "status": c.status,
                "duration": c.duration,
                "completionRate": c.completion_rate,
                "startDate": c.start_date.isoformat(),
                "endDate": c.end_date.isoformat() if c.end_date else None,
            }
            for c in challenges
        ],
    }
