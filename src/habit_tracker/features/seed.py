"""Default feature flags, inserted at startup when missing."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select

from habit_tracker.db.models import FeatureFlag

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

FEATURE_FLAG_SEED_DATA: list[dict] = [
    {
        "key": "ai_insights",
        "name": "AI Insights",
        "description": "Generated weekly reports with habit insights",
        "category": "analytics",
        "enabled": False,
    },
    {
        "key": "advanced_analytics",
        "name": "Advanced Analytics",
        "description": "Heatmaps, correlations and long-range charts on the analytics page",
        "category": "analytics",
        "enabled": True,
    },
    {
        "key": "habit_templates",
        "name": "Habit Templates",
        "description": "Start new habits from curated templates",
        "category": "habits",
        "enabled": True,
    },
    {
        "key": "challenges",
        "name": "Challenges",
        "description": "Time-boxed personal challenges",
        "category": "social",
        "enabled": True,
    },
    {
        "key": "book_tracking",
        "name": "Book Tracking",
        "description": "Reading list with progress and ratings",
        "category": "content",
        "enabled": True,
    },
    {
        "key": "data_export",
        "name": "Data Export",
        "description": "Users can download their own data as CSV",
        "category": "general",
        "enabled": False,
    },
]


async def seed_feature_flags(db: AsyncSession) -> int:
    """Insert default flags whose keys do not exist yet. Returns number inserted.

    Existing flags are left untouched so admin changes survive restarts.
    """
    existing = set((await db.execute(select(FeatureFlag.key))).scalars().all())
    inserted = 0
    for flag_data in FEATURE_FLAG_SEED_DATA:
        if flag_data["key"] in existing:
            continue
        db.add(FeatureFlag(**flag_data))
        inserted += 1

    await db.commit()
    logger.info("feature_flags_seeded", inserted=inserted, total=len(FEATURE_FLAG_SEED_DATA))
    return inserted
