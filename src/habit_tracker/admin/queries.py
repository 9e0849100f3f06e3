"""Query composition for the admin user list.

``build_user_list_query`` turns request parameters into a ``UserListQuery``
descriptor; ``UserListQuery.statement`` renders it as SQL. Keeping the two
apart lets the filter/sort rules be tested without a database.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy import Select, func, or_, select

from habit_tracker.db.models import Habit, HabitLog, User
from habit_tracker.errors import ValidationError


class UserSortField(str, Enum):
    CREATED_AT = "createdAt"
    NAME = "name"
    EMAIL = "email"
    HABIT_COUNT = "habitCount"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class UserListQuery:
    """Filter and sort descriptor for listing users."""

    search: str | None = None
    sort_by: UserSortField = UserSortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC

    @property
    def search_pattern(self) -> str | None:
        """Lower-cased ``%term%`` LIKE pattern, or None without a search term."""
        if not self.search:
            return None
        escaped = self.search.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        return f"%{escaped}%"

    def where_clause(self) -> Any:
        """Name OR email substring match, case-insensitive."""
        pattern = self.search_pattern
        if pattern is None:
            return None
        return or_(
            func.lower(User.name).like(pattern, escape="\\"),
            func.lower(User.email).like(pattern, escape="\\"),
        )

    def sort_expression(self) -> Any:
        if self.sort_by is UserSortField.HABIT_COUNT:
            column: Any = habit_count_subquery()
        else:
            column = {
                UserSortField.CREATED_AT: User.created_at,
                UserSortField.NAME: User.name,
                UserSortField.EMAIL: User.email,
            }[self.sort_by]
        return column.asc() if self.sort_order is SortOrder.ASC else column.desc()

    def statement(self, page: int, limit: int) -> Select:
        """Paged SELECT of users with their habit and log counts."""
        stmt = select(
            User,
            habit_count_subquery().label("habit_count"),
            habit_log_count_subquery().label("habit_log_count"),
        )
        where = self.where_clause()
        if where is not None:
            stmt = stmt.where(where)
        # id breaks ties so pages never overlap
        return stmt.order_by(self.sort_expression(), User.id.asc()).offset((page - 1) * limit).limit(limit)

    def count_statement(self) -> Select:
        stmt = select(func.count()).select_from(User)
        where = self.where_clause()
        if where is not None:
            stmt = stmt.where(where)
        return stmt


def habit_count_subquery() -> Any:
    """Correlated ``COUNT(habits)`` for the enclosing user row."""
    return (
        select(func.count(Habit.id))
        .where(Habit.user_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )


def habit_log_count_subquery() -> Any:
    """Correlated ``COUNT(habit_logs)`` for the enclosing user row."""
    return (
        select(func.count(HabitLog.id))
        .where(HabitLog.user_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )


def build_user_list_query(
    search: str | None = None,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
) -> UserListQuery:
    """
    Validate list parameters into a descriptor.

    Raises:
        ValidationError: For an unknown sort field or order.
    """
    try:
        field = UserSortField(sort_by)
    except ValueError as e:
        allowed = [f.value for f in UserSortField]
        msg = f"Invalid sortBy '{sort_by}'"
        raise ValidationError(msg, details={"field": "sortBy", "allowed": allowed}) from e
    try:
        order = SortOrder(sort_order.lower())
    except ValueError as e:
        msg = f"Invalid sortOrder '{sort_order}'"
        raise ValidationError(msg, details={"field": "sortOrder", "allowed": ["asc", "desc"]}) from e

    term = search.strip() if search else None
    return UserListQuery(search=term or None, sort_by=field, sort_order=order)
