"""Request schemas for admin endpoints."""

from __future__ import annotations

from habit_tracker.schemas import CamelModel


class UpdateUserRoleRequest(CamelModel):
    """Grant (true) or revoke (false) admin rights."""

    is_admin: bool
