"""
Authentication-related API schemas.
"""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UserInfo(BaseModel):
    """Public user information."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "email": "demo@example.com",
                "display_name": "Demo User",
            }
        }
    )

    id: UUID = Field(
        ...,
        description="User UUID",
        json_schema_extra={"example": "550e8400-e29b-41d4-a716-446655440000"},
    )
    email: str = Field(
        ...,
        description="User email address",
        json_schema_extra={"example": "demo@example.com"},
    )
    display_name: str | None = Field(
        default=None,
        max_length=100,
        description="User display name",
    )
