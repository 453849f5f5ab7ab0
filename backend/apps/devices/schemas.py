"""
Device redirect schemas.
"""

from datetime import datetime

from ninja import Schema
from pydantic import Field


class StartRedirectRequest(Schema):
    """Request to hand the current session to another origin."""

    redirect_origin: str = Field(
        min_length=1,
        max_length=255,
        description="Allowed origin to hand the session to",
    )
    redirect_path: str | None = Field(
        default=None,
        max_length=2048,
        description="Path to land on at the target origin (defaults to '/')",
    )


class StartRedirectResponse(Schema):
    """URL that completes the handoff on the target origin."""

    redirect_url: str = Field(description="URL to open on the target origin (or encode as a QR code)")
    expires_at: datetime = Field(description="When the embedded token expires")


class CompleteRedirectRequest(Schema):
    """Request to exchange a redirect token for a session."""

    token: str = Field(min_length=1, description="Token from the redirect URL")


class CompleteRedirectResponse(Schema):
    """Session established on this origin."""

    user_name: str
    redirect_path: str
