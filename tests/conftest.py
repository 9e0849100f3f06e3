"""Shared test fixtures.

Every test runs against a fresh in-memory SQLite database. Redis is never
initialised, so rate limiting is bypassed unless a test installs a fake client.
"""

from __future__ import annotations

import os

os.environ["HT_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["HT_JWT_SECRET"] = "test-secret-for-hs256-signing-0123456789abcdef"
os.environ["HT_JWT_ALGORITHM"] = "HS256"
os.environ["HT_LOG_FORMAT"] = "console"

import uuid  # noqa: E402
from collections.abc import AsyncGenerator, Awaitable, Callable  # noqa: E402
from datetime import date, datetime, timedelta  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from habit_tracker.auth.jwt import create_access_token, reset_keys  # noqa: E402
from habit_tracker.auth.password import hash_password  # noqa: E402
from habit_tracker.config import get_settings  # noqa: E402
from habit_tracker.database import close_db, get_engine, init_db, session_scope  # noqa: E402
from habit_tracker.db.base import Base  # noqa: E402
from habit_tracker.db.models import Habit, HabitLog, RefreshToken, User  # noqa: E402
from habit_tracker.main import create_app  # noqa: E402
from habit_tracker.monitoring import get_metrics  # noqa: E402
from habit_tracker.time_utils import utc_today, utcnow  # noqa: E402

get_settings.cache_clear()
reset_keys()

TEST_PASSWORD = "SecurePass1"
# argon2 is slow; fixtures share one hash
_PASSWORD_HASH = hash_password(TEST_PASSWORD)


@pytest.fixture(autouse=True)
def _fresh_metrics() -> None:
    """Request and error counters start from zero in every test."""
    get_metrics.cache_clear()


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Session on a freshly created schema."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_scope() as session:
        yield session

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await close_db()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, sharing the test database."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Data builders
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Insert and commit a user. Email defaults to a unique address."""

    async def _make(
        name: str = "Test User",
        email: str | None = None,
        *,
        is_admin: bool = False,
        created_at: datetime | None = None,
    ) -> User:
        user = User(
            name=name,
            email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
            password_hash=_PASSWORD_HASH,
            is_admin=is_admin,
            created_at=created_at or utcnow(),
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def make_habit(db_session: AsyncSession) -> Callable[..., Awaitable[Habit]]:
    """Insert and commit a habit for a user."""

    async def _make(user: User, name: str = "Read", **fields: Any) -> Habit:
        habit = Habit(user_id=user.id, name=name, **fields)
        db_session.add(habit)
        await db_session.commit()
        return habit

    return _make


@pytest.fixture
def make_log(db_session: AsyncSession) -> Callable[..., Awaitable[HabitLog]]:
    """Insert and commit a habit log (defaults: today, completed)."""

    async def _make(
        habit: Habit,
        day: date | None = None,
        *,
        completed: bool = True,
        created_at: datetime | None = None,
        **fields: Any,
    ) -> HabitLog:
        log = HabitLog(
            habit_id=habit.id,
            user_id=habit.user_id,
            date=day or utc_today(),
            completed=completed,
            created_at=created_at or utcnow(),
            **fields,
        )
        db_session.add(log)
        await db_session.commit()
        return log

    return _make


@pytest.fixture
def make_session(db_session: AsyncSession) -> Callable[..., Awaitable[RefreshToken]]:
    """Insert and commit a refresh-token session row."""

    async def _make(
        user: User,
        *,
        expires_in: timedelta = timedelta(days=7),
        created_at: datetime | None = None,
    ) -> RefreshToken:
        now = utcnow()
        token = RefreshToken(
            user_id=user.id,
            token_hash=uuid.uuid4().hex,
            created_at=created_at or now,
            expires_at=now + expires_in,
        )
        db_session.add(token)
        await db_session.commit()
        return token

    return _make


# ---------------------------------------------------------------------------
# Authenticated users
# ---------------------------------------------------------------------------


def _auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def headers_for() -> Callable[[User], dict[str, str]]:
    """Bearer headers for any user."""
    return _auth_headers


@pytest_asyncio.fixture
async def admin_user(make_user: Callable[..., Awaitable[User]]) -> User:
    return await make_user("Admin", "admin@example.com", is_admin=True)


@pytest_asyncio.fixture
async def regular_user(make_user: Callable[..., Awaitable[User]]) -> User:
    return await make_user("Regular", "regular@example.com")


@pytest.fixture
def admin_headers(admin_user: User) -> dict[str, str]:
    return _auth_headers(admin_user)


@pytest.fixture
def user_headers(regular_user: User) -> dict[str, str]:
    return _auth_headers(regular_user)
