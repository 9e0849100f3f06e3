"""Daily time-bucketed metrics for admin trend charts.

The per-metric queries live behind ``TimeSeriesAggregator`` so the merge into a
dense, zero-filled series (``build_trend_series``) does not depend on how or
where the buckets are computed.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import TYPE_CHECKING, Any, Protocol

from sqlalchemy import Date, case, func, select
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import FunctionElement

from habit_tracker.admin.metrics import percentage
from habit_tracker.db.models import HabitLog, User
from habit_tracker.time_utils import as_date

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class utc_day(FunctionElement):  # noqa: N801
    """Calendar day of a timestamp, taken in UTC whatever the session time zone."""

    type = Date()
    name = "utc_day"
    inherit_cache = True


@compiles(utc_day)
def _utc_day_default(element: utc_day, compiler: Any, **kw: Any) -> str:
    # SQLite stores naive UTC strings
    return f"date({compiler.process(element.clauses, **kw)})"


@compiles(utc_day, "postgresql")
def _utc_day_postgresql(element: utc_day, compiler: Any, **kw: Any) -> str:
    return f"date(timezone('UTC', {compiler.process(element.clauses, **kw)}))"


class TimeSeriesAggregator(Protocol):
    """One method per trend metric, each keyed by UTC calendar day in ``[start, end]``."""

    async def new_users_by_day(self, start: date, end: date) -> dict[date, int]:
        """Registrations per day of ``created_at``."""
        ...

    async def active_users_by_day(self, start: date, end: date) -> dict[date, int]:
        """Distinct users with a log on each log date."""
        ...

    async def completion_by_day(self, start: date, end: date) -> dict[date, tuple[int, int]]:
        """``(completed, total)`` logs per log date."""
        ...


class SqlTimeSeriesAggregator:
    """Aggregates with GROUP BY on the application database."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def new_users_by_day(self, start: date, end: date) -> dict[date, int]:
        day = utc_day(User.created_at)
        stmt = (
            select(day.label("day"), func.count(User.id))
            .where(
                User.created_at >= datetime.combine(start, time.min, tzinfo=timezone.utc),
                User.created_at < datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc),
            )
            .group_by(day)
        )
        rows = (await self.db.execute(stmt)).all()
        return {as_date(d): int(count) for d, count in rows}

    async def active_users_by_day(self, start: date, end: date) -> dict[date, int]:
        stmt = (
            select(HabitLog.date, func.count(func.distinct(HabitLog.user_id)))
            .where(HabitLog.date >= start, HabitLog.date <= end)
            .group_by(HabitLog.date)
        )
        rows = (await self.db.execute(stmt)).all()
        return {as_date(d): int(count) for d, count in rows}

    async def completion_by_day(self, start: date, end: date) -> dict[date, tuple[int, int]]:
        completed = func.sum(case((HabitLog.completed.is_(True), 1), else_=0))
        stmt = (
            select(HabitLog.date, completed, func.count(HabitLog.id))
            .where(HabitLog.date >= start, HabitLog.date <= end)
            .group_by(HabitLog.date)
        )
        rows = (await self.db.execute(stmt)).all()
        return {as_date(d): (int(done or 0), int(total)) for d, done, total in rows}


def build_trend_series(
    start: date,
    end: date,
    new_users: dict[date, int],
    active_users: dict[date, int],
    completion: dict[date, tuple[int, int]],
) -> list[dict[str, Any]]:
    """Merge per-metric buckets into one point per day, oldest first.

    Days missing from a metric are zero-filled; buckets outside
    ``[start, end]`` are ignored.
    """
    series: list[dict[str, Any]] = []
    day = start
    while day <= end:
        done, total = completion.get(day, (0, 0))
        series.append(
            {
                "date": day.isoformat(),
                "newUsers": new_users.get(day, 0),
                "activeUsers": active_users.get(day, 0),
                "completionRate": percentage(done, total),
            }
        )
        day += timedelta(days=1)
    return series
