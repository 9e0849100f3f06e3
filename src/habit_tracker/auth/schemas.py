"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import EmailStr, Field, field_validator

from habit_tracker.schemas import CamelModel


class RegisterRequest(CamelModel):
    """Email registration request."""

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    timezone: str = Field("UTC", max_length=64)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class LoginRequest(CamelModel):
    """Login with email + password."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class RefreshRequest(CamelModel):
    """Refresh token rotation request."""

    refresh_token: str


class LogoutRequest(CamelModel):
    """Logout (delete the session backing this refresh token)."""

    refresh_token: str


class UserResponse(CamelModel):
    """Current user profile."""

    id: str
    name: str
    email: str
    is_admin: bool
    timezone: str
    created_at: datetime


class TokenResponse(CamelModel):
    """Tokens returned after successful auth."""

    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
