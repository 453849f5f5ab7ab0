"""
Authentication context for request lifecycle.

Provides a typed container for authentication state that the ninja auth
classes populate and endpoints consume.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ninja.errors import HttpError

if TYPE_CHECKING:
    from apps.accounts.models import User


@dataclass
class AuthContext:
    """
    Authentication context attached to requests as ``request.auth``.

    Attributes:
        user: The authenticated User, or None if not authenticated
        failed: True if a session credential was presented but rejected
    """

    user: "User | None" = None
    failed: bool = False

    @property
    def is_authenticated(self) -> bool:
        """Check if the request carries a valid session."""
        return self.user is not None

    def require_auth(self) -> "User":
        """
        Get the authenticated user or raise 401.

        Raises:
            HttpError 401: If not authenticated
        """
        if self.user is None:
            raise HttpError(401, "Not authenticated")
        return self.user
