"""Request/response schemas for feature flag endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import Field, model_validator

from habit_tracker.schemas import CamelModel


class CreateFeatureFlagRequest(CamelModel):
    """Create a flag. The key pattern is enforced by the registry."""

    key: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=128)
    description: str | None = Field(None, max_length=1000)
    category: str = Field("general", min_length=1, max_length=64)
    enabled: bool = False
    metadata: dict[str, Any] | None = None


class UpdateFeatureFlagRequest(CamelModel):
    """Partial update; only fields present in the body are applied."""

    name: str | None = Field(None, min_length=1, max_length=128)
    description: str | None = Field(None, max_length=1000)
    category: str | None = Field(None, min_length=1, max_length=64)
    enabled: bool | None = None
    metadata: dict[str, Any] | None = None

    @model_validator(mode="after")
    def require_one_field(self) -> UpdateFeatureFlagRequest:
        if not self.model_fields_set:
            msg = "At least one field must be provided"
            raise ValueError(msg)
        for name in ("name", "category", "enabled"):
            if name in self.model_fields_set and getattr(self, name) is None:
                msg = f"{name} cannot be null"
                raise ValueError(msg)
        return self

    def patch(self) -> dict[str, Any]:
        """Supplied fields only, keyed by API name."""
        return self.model_dump(include=self.model_fields_set)

