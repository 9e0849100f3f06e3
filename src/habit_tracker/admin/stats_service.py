"""Application-wide statistics, daily trends, content breakdown and system health.

Sub-queries run one after another on the request's session; the small skew
between them is acceptable for reporting data.
"""

from __future__ import annotations

import platform
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select

from habit_tracker.admin.metrics import one_decimal, percentage
from habit_tracker.admin.timeseries import (
    SqlTimeSeriesAggregator,
    TimeSeriesAggregator,
    build_trend_series,
)
from habit_tracker.config import get_settings
from habit_tracker.db.models import Book, Challenge, Habit, HabitLog, User
from habit_tracker.health.checks import check_dependencies
from habit_tracker.monitoring import format_uptime, get_metrics, process_snapshot
from habit_tracker.time_utils import isoformat_utc, utc_today, utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

DEFAULT_TREND_DAYS = 30


async def _scalar(db: AsyncSession, stmt: Any) -> int:
    return int((await db.execute(stmt)).scalar_one() or 0)


async def _count_logs(db: AsyncSession, *, completed_only: bool = False) -> int:
    stmt = select(func.count()).select_from(HabitLog)
    if completed_only:
        stmt = stmt.where(HabitLog.completed.is_(True))
    return await _scalar(db, stmt)


async def count_active_users(db: AsyncSession, days: int) -> int:
    """Distinct users with a log created in ``[now - days, now]``.

    Rows created after ``now`` (clock skew) are not counted.
    """
    now = utcnow()
    stmt = select(func.count(func.distinct(HabitLog.user_id))).where(
        HabitLog.created_at >= now - timedelta(days=days),
        HabitLog.created_at <= now,
    )
    return await _scalar(db, stmt)


async def get_application_stats(db: AsyncSession) -> dict[str, int]:
    """Headline totals for the admin overview."""
    now = utcnow()

    total_users = await _scalar(db, select(func.count()).select_from(User))
    total_habits = await _scalar(db, select(func.count()).select_from(Habit))
    total_logs = await _count_logs(db)
    admin_count = await _scalar(db, select(func.count()).select_from(User).where(User.is_admin.is_(True)))
    active_7 = await count_active_users(db, 7)
    active_30 = await count_active_users(db, 30)
    new_7 = await _scalar(
        db,
        select(func.count()).select_from(User).where(User.created_at >= now - timedelta(days=7)),
    )

    avg_completion_rate = 0
    if total_habits > 0:
        avg_completion_rate = percentage(await _count_logs(db, completed_only=True), total_logs)

    return {
        "totalUsers": total_users,
        "totalHabits": total_habits,
        "totalHabitLogs": total_logs,
        "adminCount": admin_count,
        "activeUsersLast7Days": active_7,
        "activeUsersLast30Days": active_30,
        "newRegistrationsLast7Days": new_7,
        "avgCompletionRate": avg_completion_rate,
    }


async def get_trends(
    db: AsyncSession,
    days: int = DEFAULT_TREND_DAYS,
    aggregator: TimeSeriesAggregator | None = None,
) -> list[dict[str, Any]]:
    """``days + 1`` daily points covering ``[today - days, today]`` (UTC)."""
    aggregator = aggregator or SqlTimeSeriesAggregator(db)
    end = utc_today()
    start = end - timedelta(days=days)

    new_users = await aggregator.new_users_by_day(start, end)
    active_users = await aggregator.active_users_by_day(start, end)
    completion = await aggregator.completion_by_day(start, end)

    return build_trend_series(start, end, new_users, active_users, completion)


async def _group_counts(db: AsyncSession, column: Any, *, order_by_count: bool = False) -> list[tuple[Any, int]]:
    count = func.count()
    stmt = select(column, count).group_by(column)
    if order_by_count:
        stmt = stmt.where(column.is_not(None)).order_by(count.desc(), column.asc())
    else:
        stmt = stmt.order_by(column.asc())
    return [(value, int(n)) for value, n in (await db.execute(stmt)).all()]


async def get_content_breakdown(db: AsyncSession) -> dict[str, Any]:
    """Grouped counts across habits, books and challenges plus engagement ratios."""
    by_frequency = await _group_counts(db, Habit.frequency)
    by_type = await _group_counts(db, Habit.habit_type)
    by_category = await _group_counts(db, Habit.category, order_by_count=True)
    books_by_status = await _group_counts(db, Book.status)
    challenges_by_status = await _group_counts(db, Challenge.status)

    total_users = await _scalar(db, select(func.count()).select_from(User))
    total_habits = await _scalar(db, select(func.count()).select_from(Habit))
    users_with_active_habits = await _scalar(
        db,
        select(func.count(func.distinct(Habit.user_id))).where(
            Habit.is_archived.is_(False),
            Habit.is_active.is_(True),
        ),
    )
    avg_streak = (
        await db.execute(select(func.avg(Habit.current_streak)).where(Habit.is_archived.is_(False)))
    ).scalar_one()

    total_logs = await _count_logs(db)
    completed_logs = await _count_logs(db, completed_only=True)

    return {
        "habits": {
            "byFrequency": [{"frequency": value, "count": n} for value, n in by_frequency],
            "byType": [{"type": value, "count": n} for value, n in by_type],
            "byCategory": [{"category": value, "count": n} for value, n in by_category],
        },
        "books": {"byStatus": [{"status": value, "count": n} for value, n in books_by_status]},
        "challenges": {"byStatus": [{"status": value, "count": n} for value, n in challenges_by_status]},
        "engagement": {
            "avgHabitsPerUser": one_decimal(total_habits, total_users),
            "avgCompletionRate": percentage(completed_logs, total_logs),
            "avgStreakLength": one_decimal(float(avg_streak or 0), 1),
            "usersWithActiveHabits": users_with_active_habits,
            "totalUsers": total_users,
        },
    }


async def get_system_stats(db: AsyncSession) -> dict[str, Any]:
    """Runtime view for the admin system tab.

    Process info, dependency latency, this worker's request/error/throttle
    counters, and daily/weekly/monthly active users.
    """
    settings = get_settings()
    metrics = get_metrics()
    dependencies = await check_dependencies(db)

    return {
        "application": {
            "version": settings.app_version,
            "environment": settings.environment,
            "pythonVersion": platform.python_version(),
            "startedAt": isoformat_utc(metrics.started_at),
            "uptime": {
                "seconds": int(metrics.uptime_seconds),
                "formatted": format_uptime(metrics.uptime_seconds),
            },
        },
        "dependencies": {name: status.to_dict() for name, status in dependencies.items()},
        "system": process_snapshot(),
        "requests": metrics.requests_snapshot(),
        "errors": metrics.errors_snapshot(),
        "rateLimiting": metrics.rate_limiting_snapshot(),
        "activeUsers": {
            "dau": await count_active_users(db, 1),
            "wau": await count_active_users(db, 7),
            "mau": await count_active_users(db, 30),
            "totalRegistered": await _scalar(db, select(func.count()).select_from(User)),
        },
    }
