"""
Session API endpoints.

Login itself is a passkey ceremony (see ``apps.passkeys.api``); these
endpoints only inspect or drop the resulting session.
"""

from django.http import HttpRequest, HttpResponse
from ninja import Router

from apps.accounts.schemas import CurrentUserResponse, LogoutResponse
from apps.accounts.tokens import clear_session_cookie
from apps.core.logging import get_logger
from apps.core.security import get_auth_user, session_auth

logger = get_logger(__name__)

router = Router(tags=["auth"])


@router.get(
    "/me",
    response=CurrentUserResponse,
    auth=session_auth,
    summary="Current user",
    description="Return the user bound to the session credential.",
)
def current_user(request: HttpRequest) -> CurrentUserResponse:
    """Return the authenticated user."""
    user = get_auth_user(request)
    return CurrentUserResponse(user_id=str(user.id), user_name=user.name)


@router.post(
    "/logout",
    response=LogoutResponse,
    summary="Log out",
    description=(
        "Delete the session cookie. Sessions are stateless signed tokens, so no "
        "server-side state changes and a copied token remains valid until it expires."
    ),
)
def logout(request: HttpRequest, response: HttpResponse) -> LogoutResponse:
    """Clear the session cookie."""
    clear_session_cookie(response)
    logger.info("logout")
    return LogoutResponse()
