"""
Pydantic schemas for account/session API endpoints.
"""

from pydantic import BaseModel, Field


class CurrentUserResponse(BaseModel):
    """The authenticated user."""

    user_id: str = Field(description="Opaque user ID")
    user_name: str = Field(description="Display name")


class LogoutResponse(BaseModel):
    """Response after logout."""

    success: bool = True
