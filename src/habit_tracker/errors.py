"""Typed application errors.

Every error raised by the service layer carries its HTTP status and a stable
machine-readable code, so the global handler maps kind -> status without
inspecting message strings.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details


class ValidationError(AppError):
    """Malformed input (e.g. a flag key failing the pattern check)."""

    status_code = 400
    code = "VALIDATION_ERROR"


class BadRequestError(AppError):
    """Request is well-formed but violates a business rule."""

    status_code = 400
    code = "BAD_REQUEST"


class AuthenticationError(AppError):
    """Missing, invalid or expired credentials."""

    status_code = 401
    code = "AUTHENTICATION_ERROR"


class AuthorizationError(AppError):
    """Authenticated but not allowed to perform the action."""

    status_code = 403
    code = "AUTHORIZATION_ERROR"


class NotFoundError(AppError):
    """Entity absent."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: str | None = None) -> None:
        message = f"{resource} with id '{identifier}' not found" if identifier else f"{resource} not found"
        super().__init__(message, details={"resource": resource, "id": identifier} if identifier else None)
        self.resource = resource
        self.identifier = identifier


class ConflictError(AppError):
    """Duplicate unique key."""

    status_code = 409
    code = "CONFLICT"
