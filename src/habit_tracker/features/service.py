"""Feature flag registry and its audit log.

Every mutation is expressed as a ``FlagMutation`` (the state change plus its
audit payload) and applied by ``apply_mutation`` in a single transaction: the
audit row and the flag write either both commit or both roll back.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from habit_tracker.db.models import FeatureFlag, FeatureFlagAudit
from habit_tracker.errors import ConflictError, NotFoundError, ValidationError
from habit_tracker.time_utils import utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

FLAG_KEY_PATTERN = re.compile(r"^[a-z0-9_]+$")

# API field name -> ORM attribute for patchable fields
_PATCHABLE_FIELDS = {
    "name": "name",
    "description": "description",
    "category": "category",
    "enabled": "enabled",
    "metadata": "flag_metadata",
}


class AuditAction(str, Enum):
    """Kinds of flag mutation recorded in the audit log."""

    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"
    TOGGLED = "TOGGLED"


def validate_flag_key(key: str) -> None:
    """Raise ValidationError unless the key is lowercase snake-case."""
    if not FLAG_KEY_PATTERN.fullmatch(key or ""):
        msg = f"Invalid feature flag key '{key}': use lowercase letters, digits and underscores only"
        raise ValidationError(msg, details={"field": "key", "pattern": FLAG_KEY_PATTERN.pattern})


def flag_snapshot(flag: FeatureFlag) -> dict[str, Any]:
    """JSON-safe copy of a flag's user-visible state."""
    return {
        "key": flag.key,
        "name": flag.name,
        "description": flag.description,
        "category": flag.category,
        "enabled": flag.enabled,
        "metadata": flag.flag_metadata,
    }


def diff_flag(flag: FeatureFlag, patch: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Per-field ``{"before", "after"}`` for patch values that differ from the flag."""
    changes: dict[str, dict[str, Any]] = {}
    for name, value in patch.items():
        attr = _PATCHABLE_FIELDS.get(name)
        if attr is None:
            msg = f"Field '{name}' cannot be updated"
            raise ValidationError(msg, details={"field": name})
        current = getattr(flag, attr)
        if current != value:
            changes[name] = {"before": current, "after": value}
    return changes


def classify_update(changes: dict[str, Any], supplied: set[str]) -> AuditAction:
    """TOGGLED when ``enabled`` is the only field changed (or, for a no-op, the only one supplied)."""
    touched = set(changes) or supplied
    return AuditAction.TOGGLED if touched == {"enabled"} else AuditAction.UPDATED


@dataclass
class FlagMutation:
    """A flag state change together with the audit entry that records it."""

    action: AuditAction
    flag: FeatureFlag
    actor_id: str
    changes: dict[str, Any] = field(default_factory=dict)

    def audit_entry(self) -> FeatureFlagAudit:
        return FeatureFlagAudit(
            flag_key=self.flag.key,
            action=self.action.value,
            changes=self.changes,
            performed_by=self.actor_id,
            created_at=utcnow(),
        )


async def apply_mutation(db: AsyncSession, mutation: FlagMutation) -> FeatureFlag:
    """Write the audit entry and the flag change atomically, then commit.

    The audit entry is flushed first so that for deletions it is recorded while
    the flag row still exists.
    """
    flag = mutation.flag
    try:
        db.add(mutation.audit_entry())
        await db.flush()

        if mutation.action is AuditAction.CREATED:
            db.add(flag)
        elif mutation.action is AuditAction.DELETED:
            await db.delete(flag)
        else:
            for name, change in mutation.changes.items():
                setattr(flag, _PATCHABLE_FIELDS[name], change["after"])
            flag.updated_at = utcnow()

        await db.flush()
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if mutation.action is AuditAction.CREATED:
            msg = f"Feature flag '{flag.key}' already exists"
            raise ConflictError(msg) from e
        raise
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"feature_flag_{mutation.action.value.lower()}",
        flag_key=flag.key,
        action=mutation.action.value,
        actor_id=mutation.actor_id,
        fields=sorted(mutation.changes) if mutation.action in (AuditAction.UPDATED, AuditAction.TOGGLED) else None,
    )
    return flag


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_flag(db: AsyncSession, key: str) -> FeatureFlag | None:
    """Fetch one flag by key."""
    result = await db.execute(select(FeatureFlag).where(FeatureFlag.key == key))
    return result.scalar_one_or_none()


async def get_all(db: AsyncSession) -> list[FeatureFlag]:
    """All flags, unfiltered. Callers group by category."""
    result = await db.execute(select(FeatureFlag).order_by(FeatureFlag.category, FeatureFlag.key))
    return list(result.scalars().all())


async def get_enabled_keys(db: AsyncSession) -> list[str]:
    """Keys of enabled flags, sorted."""
    result = await db.execute(
        select(FeatureFlag.key).where(FeatureFlag.enabled.is_(True)).order_by(FeatureFlag.key)
    )
    return list(result.scalars().all())


async def is_enabled(db: AsyncSession, key: str) -> bool:
    """True if the flag exists and is enabled."""
    result = await db.execute(select(FeatureFlag.enabled).where(FeatureFlag.key == key))
    return bool(result.scalar_one_or_none())


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


async def create_flag(db: AsyncSession, data: dict[str, Any], actor_id: str) -> FeatureFlag:
    """
    Create a flag (disabled unless ``enabled`` is given).

    Raises:
        ValidationError: If the key is not lowercase snake-case.
        ConflictError: If a flag with this key already exists.
    """
    key = data["key"]
    validate_flag_key(key)

    if await get_flag(db, key) is not None:
        msg = f"Feature flag '{key}' already exists"
        raise ConflictError(msg)

    now = utcnow()
    flag = FeatureFlag(
        key=key,
        name=data["name"],
        description=data.get("description"),
        category=data.get("category") or "general",
        enabled=bool(data.get("enabled", False)),
        flag_metadata=data.get("metadata"),
        created_at=now,
        updated_at=now,
    )
    mutation = FlagMutation(
        action=AuditAction.CREATED,
        flag=flag,
        actor_id=actor_id,
        changes={"before": None, "after": flag_snapshot(flag)},
    )
    return await apply_mutation(db, mutation)


async def update_flag(db: AsyncSession, key: str, patch: dict[str, Any], actor_id: str) -> FeatureFlag:
    """
    Patch a flag. ``patch`` holds only the fields the caller supplied.

    Raises:
        NotFoundError: If no flag has this key.
    """
    flag = await get_flag(db, key)
    if flag is None:
        raise NotFoundError("Feature flag", key)

    changes = diff_flag(flag, patch)
    mutation = FlagMutation(
        action=classify_update(changes, set(patch)),
        flag=flag,
        actor_id=actor_id,
        changes=changes,
    )
    return await apply_mutation(db, mutation)


async def delete_flag(db: AsyncSession, key: str, actor_id: str) -> None:
    """
    Hard-delete a flag, keeping its final state in the audit log.

    Raises:
        NotFoundError: If no flag has this key.
    """
    flag = await get_flag(db, key)
    if flag is None:
        raise NotFoundError("Feature flag", key)

    mutation = FlagMutation(
        action=AuditAction.DELETED,
        flag=flag,
        actor_id=actor_id,
        changes={"before": flag_snapshot(flag), "after": None},
    )
    await apply_mutation(db, mutation)


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------


async def get_audit_log(
    db: AsyncSession,
    flag_key: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[FeatureFlagAudit], int]:
    """Audit entries newest-first, optionally for one flag key.

    Returns:
        Tuple of (entries on this page, total matching entries).
    """
    query = select(FeatureFlagAudit)
    count_query = select(func.count()).select_from(FeatureFlagAudit)
    if flag_key:
        query = query.where(FeatureFlagAudit.flag_key == flag_key)
        count_query = count_query.where(FeatureFlagAudit.flag_key == flag_key)

    query = (
        query.order_by(FeatureFlagAudit.created_at.desc(), FeatureFlagAudit.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    total = (await db.execute(count_query)).scalar_one()
    entries = list((await db.execute(query)).scalars().all())
    return entries, total
