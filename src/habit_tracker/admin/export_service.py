"""Tabular data exports (users, habits, logs) for CSV download."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select
from sqlalchemy.orm import joinedload

from habit_tracker.admin.queries import habit_count_subquery, habit_log_count_subquery
from habit_tracker.config import get_settings
from habit_tracker.db.models import Habit, HabitLog, User
from habit_tracker.errors import ValidationError
from habit_tracker.time_utils import isoformat_utc

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

EXPORT_TYPES = ("users", "habits", "logs")

USER_HEADERS = ["ID", "Name", "Email", "Admin", "Timezone", "Created", "Habits", "Logs"]
HABIT_HEADERS = [
    "ID",
    "Name",
    "User",
    "Email",
    "Frequency",
    "Type",
    "Category",
    "Active",
    "Archived",
    "Current Streak",
    "Longest Streak",
    "Total Completions",
    "Created",
]
LOG_HEADERS = ["ID", "Date", "Habit", "User", "Email", "Completed", "Value", "Notes", "Created"]


@dataclass
class ExportTable:
    """Header row plus data rows in header order."""

    headers: list[str]
    rows: list[list[Any]] = field(default_factory=list)


def yes_no(value: bool) -> str:
    return "Yes" if value else "No"


def validate_export_type(export_type: str) -> None:
    """Raise ValidationError for anything outside the export whitelist."""
    if export_type not in EXPORT_TYPES:
        msg = f"Invalid export type '{export_type}'"
        raise ValidationError(msg, details={"field": "type", "allowed": list(EXPORT_TYPES)})


async def _export_users(db: AsyncSession) -> ExportTable:
    stmt = select(
        User,
        habit_count_subquery().label("habit_count"),
        habit_log_count_subquery().label("habit_log_count"),
    ).order_by(User.created_at.desc(), User.id.asc())
    rows = (await db.execute(stmt)).all()
    return ExportTable(
        headers=USER_HEADERS,
        rows=[
            [
                u.id,
                u.name,
                u.email,
                yes_no(u.is_admin),
                u.timezone,
                isoformat_utc(u.created_at),
                habit_count,
                log_count,
            ]
            for u, habit_count, log_count in rows
        ],
    )


async def _export_habits(db: AsyncSession) -> ExportTable:
    stmt = select(Habit).options(joinedload(Habit.user)).order_by(Habit.created_at.desc(), Habit.id.asc())
    habits = (await db.execute(stmt)).scalars().all()
    return ExportTable(
        headers=HABIT_HEADERS,
        rows=[
            [
                h.id,
                h.name,
                h.user.name,
                h.user.email,
                h.frequency,
                h.habit_type,
                h.category or "",
                yes_no(h.is_active),
                yes_no(h.is_archived),
                h.current_streak,
                h.longest_streak,
                h.total_completions,
                isoformat_utc(h.created_at),
            ]
            for h in habits
        ],
    )


async def _export_logs(db: AsyncSession, limit: int) -> ExportTable:
    stmt = (
        select(HabitLog)
        .options(joinedload(HabitLog.habit), joinedload(HabitLog.user))
        .order_by(HabitLog.date.desc(), HabitLog.created_at.desc(), HabitLog.id.asc())
        .limit(limit)
    )
    logs = (await db.execute(stmt)).scalars().all()
    return ExportTable(
        headers=LOG_HEADERS,
        rows=[
            [
                log.id,
                log.date.isoformat(),
                log.habit.name,
                log.user.name,
                log.user.email,
                yes_no(log.completed),
                "" if log.value is None else log.value,
                log.notes or "",
                isoformat_utc(log.created_at),
            ]
            for log in logs
        ],
    )


async def export_data(db: AsyncSession, export_type: str, log_limit: int | None = None) -> ExportTable:
    """
    Build the export table for ``users``, ``habits`` or ``logs``.

    Logs are capped at ``log_limit`` rows (default ``export_log_row_limit``),
    newest log date first.

    Raises:
        ValidationError: For an unknown export type, before any query runs.
    """
    validate_export_type(export_type)

    if export_type == "users":
        table = await _export_users(db)
    elif export_type == "habits":
        table = await _export_habits(db)
    else:
        limit = log_limit if log_limit is not None else get_settings().export_log_row_limit
        table = await _export_logs(db, max(limit, 0))

    logger.info("data_exported", export_type=export_type, rows=len(table.rows))
    return table
