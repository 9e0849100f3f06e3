"""Application factory and lifespan."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from habit_tracker.admin.router import router as admin_router
from habit_tracker.auth.router import router as auth_router
from habit_tracker.config import get_settings
from habit_tracker.database import close_db, init_db, session_scope
from habit_tracker.features.router import router as features_router
from habit_tracker.features.seed import seed_feature_flags
from habit_tracker.health.router import router as health_router
from habit_tracker.middleware import setup_middleware
from habit_tracker.redis_client import close_redis, init_redis

logger = structlog.get_logger()


async def _seed_defaults() -> None:
    try:
        async with session_scope() as db:
            await seed_feature_flags(db)
    except Exception:  # noqa: BLE001
        # Before the first migration the tables do not exist; the app still starts
        logger.warning("feature_flag_seeding_failed", exc_info=True)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    await _seed_defaults()
    logger.info("app_started", version=settings.app_version, environment=settings.environment)

    yield

    await close_redis()
    await close_db()
    logger.info("app_stopped")


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="Habit Tracker API",
        summary="Admin analytics, feature flags and session management",
        version=settings.app_version,
        # Interactive docs only in debug builds
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    setup_middleware(app, settings)

    app.include_router(health_router, tags=["Health"])
    for router in (auth_router, features_router, admin_router):
        app.include_router(router)
    return app


app = create_app()
