"""ORM models for the habit tracker schema.

Created by Alembic revision 001_initial_schema. All timestamps are stored as
UTC; Python-side defaults keep the stored format identical across backends.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from habit_tracker.db.base import Base, BigIntPK, JSONType, UUIDString, new_uuid
from habit_tracker.time_utils import utcnow

# HabitLog.date would shadow the type inside its own class body
CalendarDay = date

# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Application user. Admins manage flags, users and sessions."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(UUIDString, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", server_default="UTC", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    # --- Relationships ---
    habits: Mapped[list[Habit]] = relationship("Habit", back_populates="user", passive_deletes=True)
    habit_logs: Mapped[list[HabitLog]] = relationship("HabitLog", back_populates="user", passive_deletes=True)
    milestones: Mapped[list[Milestone]] = relationship("Milestone", back_populates="user", passive_deletes=True)
    books: Mapped[list[Book]] = relationship("Book", back_populates="user", passive_deletes=True)
    challenges: Mapped[list[Challenge]] = relationship("Challenge", back_populates="user", passive_deletes=True)
    refresh_tokens: Mapped[list[RefreshToken]] = relationship(
        "RefreshToken", back_populates="user", passive_deletes=True
    )


# ---------------------------------------------------------------------------
# Auth: Refresh Tokens (sessions)
# ---------------------------------------------------------------------------


class RefreshToken(Base):
    """Refresh-token grant. One row per live session; revocation deletes the row."""

    __tablename__ = "refresh_tokens"
    __table_args__ = (
        Index("ix_refresh_tokens_user_id", "user_id"),
        Index("ix_refresh_tokens_expires_at", "expires_at"),
    )

    id: Mapped[str] = mapped_column(UUIDString, primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(UUIDString, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)

    user: Mapped[User] = relationship("User", back_populates="refresh_tokens")


# ---------------------------------------------------------------------------
# Habits & tracking
# ---------------------------------------------------------------------------


class Habit(Base):
    """A tracked habit with denormalized streak counters."""

    __tablename__ = "habits"
    __table_args__ = (Index("ix_habits_user_id", "user_id"),)

    id: Mapped[str] = mapped_column(UUIDString, primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(UUIDString, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    frequency: Mapped[str] = mapped_column(String(16), default="DAILY", server_default="DAILY", nullable=False)
    habit_type: Mapped[str] = mapped_column(String(16), default="BOOLEAN", server_default="BOOLEAN", nullable=False)
    category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    color: Mapped[str] = mapped_column(String(16), default="#3b82f6", server_default="#3b82f6", nullable=False)
    icon: Mapped[str | None] = mapped_column(String(16), nullable=True)
    goal: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true", nullable=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    current_streak: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    total_completions: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    user: Mapped[User] = relationship("User", back_populates="habits")
    logs: Mapped[list[HabitLog]] = relationship("HabitLog", back_populates="habit", passive_deletes=True)


class HabitLog(Base):
    """One tracking entry for a habit on a calendar day."""

    __tablename__ = "habit_logs"
    __table_args__ = (
        UniqueConstraint("habit_id", "date", name="uq_habit_logs_habit_date"),
        Index("ix_habit_logs_user_id", "user_id"),
        Index("ix_habit_logs_date", "date"),
    )

    id: Mapped[str] = mapped_column(UUIDString, primary_key=True, default=new_uuid)
    habit_id: Mapped[str] = mapped_column(UUIDString, ForeignKey("habits.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(UUIDString, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date: Mapped[CalendarDay] = mapped_column(Date, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    value: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    habit: Mapped[Habit] = relationship("Habit", back_populates="logs")
    user: Mapped[User] = relationship("User", back_populates="habit_logs")


class Milestone(Base):
    """Streak milestone reached on a habit."""

    __tablename__ = "milestones"

    id: Mapped[str] = mapped_column(UUIDString, primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(UUIDString, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    habit_id: Mapped[str] = mapped_column(UUIDString, ForeignKey("habits.id", ondelete="CASCADE"), nullable=False)
    milestone_type: Mapped[str] = mapped_column(String(32), nullable=False)
    value: Mapped[int] = mapped_column(Integer, nullable=False)
    achieved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    user: Mapped[User] = relationship("User", back_populates="milestones")


# ---------------------------------------------------------------------------
# Content: books & challenges
# ---------------------------------------------------------------------------


class Book(Base):
    """Reading-list entry."""

    __tablename__ = "books"

    id: Mapped[str] = mapped_column(UUIDString, primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(UUIDString, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    author: Mapped[str | None] = mapped_column(String(256), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="WANT_TO_READ", server_default="WANT_TO_READ")
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    user: Mapped[User] = relationship("User", back_populates="books")


class Challenge(Base):
    """Time-boxed personal challenge."""

    __tablename__ = "challenges"

    id: Mapped[str] = mapped_column(UUIDString, primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(UUIDString, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="ACTIVE", server_default="ACTIVE")
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    completion_rate: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    user: Mapped[User] = relationship("User", back_populates="challenges")


# ---------------------------------------------------------------------------
# Feature flags
# ---------------------------------------------------------------------------


class FeatureFlag(Base):
    """Named boolean toggle. The key is immutable once created."""

    __tablename__ = "feature_flags"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(64), default="general", server_default="general", nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    # "metadata" is reserved on declarative classes
    flag_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class FeatureFlagAudit(Base):
    """Append-only record of a flag mutation.

    No foreign keys: entries outlive both the flag and the acting user.
    """

    __tablename__ = "feature_flag_audit"
    __table_args__ = (
        Index("ix_feature_flag_audit_flag_key", "flag_key"),
        Index("ix_feature_flag_audit_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    flag_key: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(16), nullable=False)
    changes: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    performed_by: Mapped[str] = mapped_column(UUIDString, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
