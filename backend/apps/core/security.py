"""
Core security - session authentication for the API.

Sessions are stateless signed tokens (see ``apps.accounts.tokens``). They
are normally carried in the HttpOnly session cookie; an
``Authorization: Bearer`` header is accepted as well for non-browser
clients.
"""

from django.http import HttpRequest
from ninja.errors import HttpError
from ninja.security import APIKeyCookie, HttpBearer

from apps.accounts.exceptions import SessionTokenError
from apps.accounts.models import User
from apps.accounts.services import get_user
from apps.accounts.tokens import session_cookie_name, verify_session_token
from apps.core.auth import AuthContext


def authenticate_session_token(token: str | None) -> AuthContext | None:
    """
    Resolve a session token to an AuthContext.

    Returns None for missing, malformed, expired or orphaned tokens.
    """
    if not token:
        return None
    try:
        user_id = verify_session_token(token)
    except SessionTokenError:
        return None
    user = get_user(user_id)
    if user is None:
        return None
    return AuthContext(user=user)


class SessionCookieAuth(APIKeyCookie):
    """
    Session cookie authentication.

    CSRF checks are disabled: the cookie is SameSite=Strict, so browsers
    never attach it to cross-site requests.
    """

    def __init__(self) -> None:
        self.param_name = session_cookie_name()
        super().__init__(csrf=False)

    def authenticate(self, request: HttpRequest, key: str | None) -> AuthContext | None:
        return authenticate_session_token(key)


class SessionBearerAuth(HttpBearer):
    """Session token passed as ``Authorization: Bearer <token>``."""

    def authenticate(self, request: HttpRequest, token: str) -> AuthContext | None:
        return authenticate_session_token(token)


session_auth = [SessionCookieAuth(), SessionBearerAuth()]


def _bearer_token(request: HttpRequest) -> str | None:
    header = request.META.get("HTTP_AUTHORIZATION", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def get_optional_auth(request: HttpRequest) -> AuthContext:
    """
    Auth context for endpoints that are public but behave differently for
    an authenticated caller (e.g. adding a second passkey).

    Never raises; an invalid credential yields ``AuthContext(failed=True)``.
    """
    existing = getattr(request, "auth", None)
    if isinstance(existing, AuthContext):
        return existing

    presented = request.COOKIES.get(session_cookie_name()) or _bearer_token(request)
    if presented is None:
        return AuthContext()
    return authenticate_session_token(presented) or AuthContext(failed=True)


def get_auth_user(request: HttpRequest) -> User:
    """Authenticated user of a request guarded by ``session_auth``."""
    auth = getattr(request, "auth", None)
    if isinstance(auth, AuthContext):
        return auth.require_auth()
    raise HttpError(401, "Not authenticated")
