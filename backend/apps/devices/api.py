"""
Device redirect API endpoints.

``redirect/start`` runs on the canonical origin for a logged-in user;
``redirect/complete`` runs on the target origin and sets its session cookie.
"""

from django.http import HttpRequest, HttpResponse, HttpResponseRedirect
from ninja import Router
from ninja.errors import HttpError

from apps.accounts.tokens import session_cookie_secure, set_session_cookie
from apps.core.origin import InvalidOriginError, get_origin_policy
from apps.core.schemas import ErrorResponse
from apps.core.security import get_auth_user, session_auth
from apps.devices.exceptions import (
    RedirectTokenExpiredError,
    RedirectTokenInvalidError,
    RedirectTokenNotFoundError,
)
from apps.devices.schemas import (
    CompleteRedirectRequest,
    CompleteRedirectResponse,
    StartRedirectRequest,
    StartRedirectResponse,
)
from apps.devices.services import RedirectCompleteResult, complete_redirect, create_redirect_token

router = Router(tags=["devices"])


@router.post(
    "/redirect/start",
    response={200: StartRedirectResponse, 400: ErrorResponse},
    auth=session_auth,
    summary="Start a session handoff",
    description="Mint a single-use URL that logs the target origin in as the current user.",
)
def start_redirect(request: HttpRequest, payload: StartRedirectRequest) -> StartRedirectResponse:
    """Mint a redirect URL for the authenticated user."""
    user = get_auth_user(request)

    try:
        result = create_redirect_token(
            user,
            redirect_origin=payload.redirect_origin,
            redirect_path=payload.redirect_path,
        )
    except InvalidOriginError as e:
        raise HttpError(400, str(e)) from None

    return StartRedirectResponse(redirect_url=result.redirect_url, expires_at=result.expires_at)


def _exchange(request: HttpRequest, token: str) -> RedirectCompleteResult:
    try:
        return complete_redirect(token, request_origin=get_origin_policy().origin_of(request.META))
    except RedirectTokenNotFoundError as e:
        raise HttpError(404, str(e)) from None
    except (RedirectTokenExpiredError, RedirectTokenInvalidError) as e:
        raise HttpError(400, str(e)) from None


@router.get(
    "/redirect/complete",
    summary="Complete a session handoff (browser navigation)",
    description="Exchange the token, set the session cookie and redirect to the bound path.",
)
def complete_redirect_get(request: HttpRequest, token: str) -> HttpResponse:
    """Browser landing point for redirect URLs and QR codes."""
    result = _exchange(request, token)
    response = HttpResponseRedirect(result.redirect_path)
    set_session_cookie(response, result.session_token, secure=session_cookie_secure(request.META))
    return response


@router.post(
    "/redirect/complete",
    response={200: CompleteRedirectResponse, 400: ErrorResponse, 404: ErrorResponse},
    summary="Complete a session handoff",
    description="Exchange the token for a session cookie on this origin.",
)
def complete_redirect_post(
    request: HttpRequest,
    response: HttpResponse,
    payload: CompleteRedirectRequest,
) -> CompleteRedirectResponse:
    """Exchange a redirect token for a session."""
    result = _exchange(request, payload.token)
    set_session_cookie(response, result.session_token, secure=session_cookie_secure(request.META))
    return CompleteRedirectResponse(user_name=result.user.name, redirect_path=result.redirect_path)
