"""Timed connectivity checks for the database and Redis.

Used by the readiness endpoint and by the admin system stats view.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import text

from habit_tracker.redis_client import get_redis

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

CONNECTED = "connected"
ERROR = "error"
NOT_CONFIGURED = "not configured"


@dataclass
class DependencyStatus:
    status: str
    latency_ms: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == CONNECTED

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status, "latencyMs": self.latency_ms}
        if self.error is not None:
            data["error"] = self.error
        return data


async def _timed(name: str, check: Callable[[], Awaitable[Any]]) -> DependencyStatus:
    started = time.perf_counter()
    try:
        await check()
    except Exception as exc:  # noqa: BLE001
        latency = round((time.perf_counter() - started) * 1000)
        logger.warning("dependency_check_failed", dependency=name, error=str(exc))
        return DependencyStatus(ERROR, latency, str(exc))
    return DependencyStatus(CONNECTED, round((time.perf_counter() - started) * 1000))


async def check_database(db: AsyncSession) -> DependencyStatus:
    return await _timed("database", lambda: db.execute(text("SELECT 1")))


async def check_redis() -> DependencyStatus:
    client = get_redis()
    if client is None:
        return DependencyStatus(NOT_CONFIGURED)
    return await _timed("redis", client.ping)


async def check_dependencies(db: AsyncSession) -> dict[str, DependencyStatus]:
    """Database then Redis, one after the other."""
    return {"database": await check_database(db), "redis": await check_redis()}
