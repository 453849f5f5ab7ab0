"""
Passkey (WebAuthn) API endpoints.

Registration and login are two-step ceremonies (``begin`` returns options
for the browser, ``complete`` verifies the browser's answer). Management
endpoints operate on the logged-in user's passkeys.
"""

from django.http import HttpRequest, HttpResponse
from ninja import Body, Router
from ninja.errors import HttpError

from apps.accounts.tokens import issue_session_token, session_cookie_secure, set_session_cookie
from apps.core.logging import get_logger
from apps.core.origin import InvalidOriginError
from apps.core.schemas import ErrorResponse
from apps.core.security import get_auth_user, get_optional_auth, session_auth
from apps.devices.exceptions import RedirectError
from apps.devices.services import create_redirect
from apps.passkeys.credentials import delete_passkey, list_passkeys, rename_passkey
from apps.passkeys.exceptions import (
    AlreadySetUpError,
    ChallengeError,
    InvalidInputError,
    LastPasskeyError,
    NotSetUpError,
    PasskeyNotFoundError,
    UnknownCredentialError,
    VerificationFailedError,
)
from apps.passkeys.models import Passkey
from apps.passkeys.schemas import (
    CreationOptions,
    LoginBeginRequest,
    LoginBeginResponse,
    LoginCompleteRequest,
    LoginCompleteResponse,
    PasskeyDeleteResponse,
    PasskeyListItem,
    PasskeyRenameRequest,
    RegisterBeginRequest,
    RegisterBeginResponse,
    RegisterCompleteRequest,
    RegisterCompleteResponse,
    RequestOptions,
)
from apps.passkeys.services import get_passkey_service

logger = get_logger(__name__)

router = Router(tags=["passkeys"])


def _passkey_item(passkey: Passkey) -> PasskeyListItem:
    return PasskeyListItem(
        id=passkey.id,
        name=passkey.name,
        created=passkey.created_at,
        last_used=passkey.last_used_at,
    )


# --- Registration ---


@router.post(
    "/register/begin",
    response={200: RegisterBeginResponse, 400: ErrorResponse, 401: ErrorResponse},
    by_alias=True,
    summary="Begin passkey registration",
    description=(
        "Get WebAuthn creation options. Public for first-time setup; once a user "
        "exists, only that user's session may register more passkeys."
    ),
)
def register_begin(request: HttpRequest, payload: RegisterBeginRequest) -> RegisterBeginResponse:
    """Start a registration ceremony."""
    auth = get_optional_auth(request)
    service = get_passkey_service()

    try:
        result = service.generate_registration_options(
            user_name=payload.user_name,
            passkey_name=payload.passkey_name,
            auth_user=auth.user,
        )
    except AlreadySetUpError as e:
        raise HttpError(401, str(e)) from None
    except InvalidInputError as e:
        raise HttpError(400, str(e)) from None

    return RegisterBeginResponse(
        challenge_id=result.challenge_id,
        options=CreationOptions.model_validate(result.options_json),
    )


@router.post(
    "/register/complete",
    response={200: RegisterCompleteResponse, 400: ErrorResponse, 401: ErrorResponse},
    summary="Complete passkey registration",
    description=(
        "Verify the attestation and store the passkey. First-time setup also "
        "creates the user and starts a session."
    ),
)
def register_complete(
    request: HttpRequest,
    response: HttpResponse,
    payload: RegisterCompleteRequest,
) -> RegisterCompleteResponse:
    """Verify a registration response."""
    auth = get_optional_auth(request)
    service = get_passkey_service()

    try:
        result = service.verify_registration(
            challenge_id=payload.challenge_id,
            credential_json=payload.credential.to_webauthn_json(),
            auth_user=auth.user,
        )
    except AlreadySetUpError as e:
        raise HttpError(401, str(e)) from None
    except (ChallengeError, VerificationFailedError, InvalidInputError) as e:
        raise HttpError(400, str(e)) from None

    if result.is_new_user:
        set_session_cookie(
            response,
            issue_session_token(result.user.id),
            secure=session_cookie_secure(request.META),
        )

    return RegisterCompleteResponse(
        user_name=result.user.name,
        passkey_id=result.passkey.id,
        is_new_user=result.is_new_user,
    )


# --- Login ---


@router.post(
    "/login/begin",
    response={200: LoginBeginResponse, 400: ErrorResponse},
    by_alias=True,
    summary="Begin passkey login",
    description=(
        "Get WebAuthn request options. An optional allowed redirect_origin makes "
        "login/complete return a URL that hands the session to that origin."
    ),
)
def login_begin(
    request: HttpRequest, payload: LoginBeginRequest | None = Body(None)
) -> LoginBeginResponse:
    """Start an authentication ceremony. The body is optional."""
    payload = payload or LoginBeginRequest()
    service = get_passkey_service()

    try:
        result = service.generate_authentication_options(
            redirect_origin=payload.redirect_origin,
            redirect_path=payload.redirect_path,
        )
    except (InvalidOriginError, NotSetUpError) as e:
        raise HttpError(400, str(e)) from None

    return LoginBeginResponse(
        challenge_id=result.challenge_id,
        options=RequestOptions.model_validate(result.options_json),
    )


@router.post(
    "/login/complete",
    response={200: LoginCompleteResponse, 400: ErrorResponse, 401: ErrorResponse},
    summary="Complete passkey login",
    description="Verify the assertion and set the session cookie.",
)
def login_complete(
    request: HttpRequest,
    response: HttpResponse,
    payload: LoginCompleteRequest,
) -> LoginCompleteResponse:
    """Verify an authentication response and start a session."""
    service = get_passkey_service()

    try:
        result = service.verify_authentication(
            challenge_id=payload.challenge_id,
            credential_json=payload.credential.to_webauthn_json(),
        )
    except (VerificationFailedError, UnknownCredentialError) as e:
        raise HttpError(401, str(e)) from None
    except ChallengeError as e:
        raise HttpError(400, str(e)) from None

    redirect_url = None
    if result.redirect_origin:
        try:
            redirect_url = create_redirect(
                result.user,
                redirect_origin=result.redirect_origin,
                redirect_path=result.redirect_path,
            )
        except (InvalidOriginError, RedirectError) as e:
            raise HttpError(400, str(e)) from None

    set_session_cookie(
        response,
        issue_session_token(result.user.id),
        secure=session_cookie_secure(request.META),
    )
    return LoginCompleteResponse(user_name=result.user.name, redirect_url=redirect_url)


# --- Management (requires authentication) ---


@router.get(
    "/passkeys",
    response=list[PasskeyListItem],
    auth=session_auth,
    summary="List passkeys",
)
def list_user_passkeys(request: HttpRequest) -> list[PasskeyListItem]:
    user = get_auth_user(request)
    return [_passkey_item(p) for p in list_passkeys(user)]


@router.patch(
    "/passkeys/{passkey_id}/name",
    response={200: PasskeyListItem, 400: ErrorResponse, 404: ErrorResponse},
    auth=session_auth,
    summary="Rename a passkey",
)
def rename_user_passkey(
    request: HttpRequest,
    passkey_id: int,
    payload: PasskeyRenameRequest,
) -> PasskeyListItem:
    user = get_auth_user(request)
    try:
        passkey = rename_passkey(user, passkey_id, payload.name)
    except PasskeyNotFoundError as e:
        raise HttpError(404, str(e)) from None
    except InvalidInputError as e:
        raise HttpError(400, str(e)) from None
    return _passkey_item(passkey)


@router.delete(
    "/passkeys/{passkey_id}",
    response={200: PasskeyDeleteResponse, 404: ErrorResponse, 409: ErrorResponse},
    auth=session_auth,
    summary="Delete a passkey",
    description="Delete a passkey. The last remaining passkey cannot be deleted.",
)
def delete_user_passkey(request: HttpRequest, passkey_id: int) -> PasskeyDeleteResponse:
    user = get_auth_user(request)
    try:
        delete_passkey(user, passkey_id)
    except LastPasskeyError as e:
        raise HttpError(409, str(e)) from None
    except PasskeyNotFoundError as e:
        raise HttpError(404, str(e)) from None
    return PasskeyDeleteResponse()
