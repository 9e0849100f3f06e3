"""Engine options per database URL and the session scope guard."""

import pytest
from sqlalchemy.pool import StaticPool

from habit_tracker.database import engine_options, session_scope


class TestEngineOptions:
    def test_in_memory_sqlite_shares_one_connection(self):
        options = engine_options("sqlite+aiosqlite:///:memory:")
        assert options["poolclass"] is StaticPool
        assert options["connect_args"] == {"check_same_thread": False}

    def test_file_sqlite_uses_default_pool(self):
        assert "poolclass" not in engine_options("sqlite+aiosqlite:///./habits.db")

    def test_postgres_gets_pool_settings(self):
        options = engine_options("postgresql+asyncpg://u:p@localhost/habits")
        assert options["pool_size"] == 10
        assert options["pool_pre_ping"] is True


async def test_session_scope_requires_init():
    with pytest.raises(RuntimeError, match="init_db"):
        async with session_scope():
            pass
