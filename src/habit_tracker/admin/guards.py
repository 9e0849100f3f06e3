"""Business-rule guards checked before admin mutations."""

from __future__ import annotations

from habit_tracker.errors import BadRequestError


def assert_not_self_demotion(actor_id: str, target_id: str, new_is_admin: bool) -> None:
    """An admin may grant or revoke anyone's admin role except revoke their own.

    Raises:
        BadRequestError: If ``actor_id`` is removing its own admin flag.
    """
    if actor_id == target_id and not new_is_admin:
        msg = "You cannot remove your own admin privileges"
        raise BadRequestError(msg)
