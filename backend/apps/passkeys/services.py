"""
Passkey (WebAuthn) ceremony service.

Drives the two-phase registration and authentication ceremonies with the
webauthn library:

    begin     -> options for navigator.credentials.create()/get() plus a
                 challenge ID; the challenge bytes stay server-side
    complete  -> consume the challenge, verify the browser's response,
                 then create or touch the passkey

The dashboard has a single user. The first registration creates that
user; later registrations add passkeys and require the caller to be
logged in as the user.
"""

import json
import uuid
from dataclasses import dataclass
from typing import Any

from django.conf import settings
from django.db import transaction
from webauthn import (
    generate_authentication_options,
    generate_registration_options,
    verify_authentication_response,
    verify_registration_response,
)
from webauthn.helpers import base64url_to_bytes, options_to_json
from webauthn.helpers.exceptions import WebAuthnException
from webauthn.helpers.structs import (
    AuthenticatorSelectionCriteria,
    AuthenticatorTransport,
    CredentialDeviceType,
    PublicKeyCredentialDescriptor,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from apps.accounts.exceptions import UserAlreadyExistsError
from apps.accounts.models import User
from apps.accounts.services import create_user, get_local_user, get_user
from apps.core.logging import get_logger
from apps.core.origin import get_origin_policy, normalize_redirect_path
from apps.passkeys.challenges import begin_challenge, consume_challenge, purge_expired_challenges
from apps.passkeys.credentials import (
    add_passkey,
    clean_passkey_name,
    clean_user_name,
    get_passkey_by_credential_id,
    list_passkeys,
    record_passkey_use,
)
from apps.passkeys.exceptions import (
    AlreadySetUpError,
    NotSetUpError,
    UnknownCredentialError,
    VerificationFailedError,
)
from apps.passkeys.models import ChallengeKind, Passkey

logger = get_logger(__name__)

SIGN_COUNT_POLICY_LENIENT = "lenient"
SIGN_COUNT_POLICY_STRICT = "strict"


@dataclass
class CeremonyOptions:
    """Options returned to the client to start a ceremony."""

    challenge_id: str
    options_json: dict[str, Any]


@dataclass
class RegistrationResult:
    """Result of a successful registration."""

    user: User
    passkey: Passkey
    is_new_user: bool


@dataclass
class AuthenticationResult:
    """Result of a successful passkey login."""

    user: User
    passkey: Passkey
    redirect_origin: str | None = None
    redirect_path: str | None = None


def _descriptor(passkey: Passkey) -> PublicKeyCredentialDescriptor:
    transports = []
    for value in passkey.transports or []:
        try:
            transports.append(AuthenticatorTransport(value))
        except ValueError:
            continue
    return PublicKeyCredentialDescriptor(
        id=bytes(passkey.credential_id),
        transports=transports or None,
    )


class PasskeyService:
    """
    Service for WebAuthn passkey ceremonies.

    Relying-party settings are read once per instance; create one per
    request with ``get_passkey_service()``.
    """

    def __init__(self) -> None:
        self.rp_id = getattr(settings, "WEBAUTHN_RP_ID", "localhost")
        self.rp_name = getattr(settings, "WEBAUTHN_RP_NAME", "den")
        self.origin_policy = get_origin_policy()
        self.origin = self.origin_policy.rp_origin
        self.timeout_ms = int(getattr(settings, "WEBAUTHN_CEREMONY_TIMEOUT_MS", 60000))
        self.sign_count_policy = getattr(
            settings, "WEBAUTHN_SIGN_COUNT_POLICY", SIGN_COUNT_POLICY_LENIENT
        )

    # --- Registration ---

    def generate_registration_options(
        self,
        user_name: str | None,
        passkey_name: str | None,
        auth_user: User | None = None,
    ) -> CeremonyOptions:
        """
        Begin a registration ceremony.

        With no user yet this is first-time setup and ``user_name`` names
        the new user. Once a user exists only that user, logged in, may
        register additional passkeys; ``user_name`` is then ignored.

        The setup check runs before input validation, so an empty request
        answers "not set up" (400) vs "set up" (401) without side effects.

        Raises:
            AlreadySetUpError: A user exists and the caller is not logged in as it
            InvalidInputError: Missing or over-long user name (first setup) or passkey name
        """
        purge_expired_challenges()

        existing = get_local_user()
        if existing is not None and (auth_user is None or auth_user.id != existing.id):
            raise AlreadySetUpError("Not authenticated")

        passkey_name = clean_passkey_name(passkey_name)

        if existing is None:
            cleaned_user_name = clean_user_name(user_name)
            user_id = uuid.uuid4()
            exclude: list[PublicKeyCredentialDescriptor] = []
        else:
            cleaned_user_name = existing.name
            user_id = existing.id
            exclude = [_descriptor(p) for p in list_passkeys(existing)]

        challenge_id, state = begin_challenge(
            ChallengeKind.REGISTRATION,
            context={
                "user_id": str(user_id),
                "user_name": cleaned_user_name,
                "passkey_name": passkey_name,
                "is_new_user": existing is None,
            },
        )

        options = generate_registration_options(
            rp_id=self.rp_id,
            rp_name=self.rp_name,
            user_id=user_id.bytes,
            user_name=cleaned_user_name,
            user_display_name=cleaned_user_name,
            challenge=state.challenge,
            timeout=self.timeout_ms,
            exclude_credentials=exclude,
            authenticator_selection=AuthenticatorSelectionCriteria(
                resident_key=ResidentKeyRequirement.REQUIRED,
                user_verification=UserVerificationRequirement.REQUIRED,
            ),
        )

        logger.info(
            "passkey_registration_started",
            is_new_user=existing is None,
            excluded_credentials=len(exclude),
        )
        return CeremonyOptions(
            challenge_id=challenge_id,
            options_json=json.loads(options_to_json(options)),
        )

    def verify_registration(
        self,
        challenge_id: str,
        credential_json: dict[str, Any],
        auth_user: User | None = None,
    ) -> RegistrationResult:
        """
        Complete a registration ceremony and store the new passkey.

        Raises:
            ChallengeNotFoundError / ChallengeExpiredError / ChallengeKindMismatchError
            AlreadySetUpError: Adding a passkey without being logged in as the
                user, or another registration created the user first
            VerificationFailedError: Attestation did not verify, or the
                credential is already registered
        """
        state = consume_challenge(challenge_id, ChallengeKind.REGISTRATION)
        context = state.context
        is_new_user = bool(context["is_new_user"])

        if not is_new_user and (auth_user is None or str(auth_user.id) != context["user_id"]):
            raise AlreadySetUpError("Not authenticated")

        try:
            verification = verify_registration_response(
                credential=credential_json,
                expected_challenge=state.challenge,
                expected_rp_id=self.rp_id,
                expected_origin=self.origin,
                require_user_verification=True,
            )
        except (WebAuthnException, ValueError) as e:
            logger.warning("passkey_registration_verification_failed", error=str(e))
            raise VerificationFailedError(f"Registration verification failed: {e}") from e

        response = credential_json.get("response") or {}
        transports = [t for t in response.get("transports") or [] if isinstance(t, str)]

        with transaction.atomic():
            if is_new_user:
                try:
                    user = create_user(context["user_name"], user_id=uuid.UUID(context["user_id"]))
                except UserAlreadyExistsError:
                    raise AlreadySetUpError("Setup has already been completed") from None
            else:
                user = get_user(context["user_id"])
                if user is None:
                    raise AlreadySetUpError("Not authenticated")

            passkey = add_passkey(
                user,
                name=context["passkey_name"],
                credential_id=verification.credential_id,
                public_key=verification.credential_public_key,
                sign_count=verification.sign_count,
                aaguid=str(verification.aaguid) if verification.aaguid else "",
                transports=transports,
                backup_eligible=(
                    verification.credential_device_type == CredentialDeviceType.MULTI_DEVICE
                ),
                backup_state=bool(verification.credential_backed_up),
            )

        logger.info(
            "passkey_registered",
            user_id=str(user.id),
            passkey_id=passkey.id,
            is_new_user=is_new_user,
        )
        return RegistrationResult(user=user, passkey=passkey, is_new_user=is_new_user)

    # --- Authentication ---

    def generate_authentication_options(
        self,
        redirect_origin: str | None = None,
        redirect_path: str | None = None,
    ) -> CeremonyOptions:
        """
        Begin a login ceremony.

        No allow-list of credentials is sent: passkeys are discoverable, so
        the authenticator offers whichever credential it holds for the RP.

        Args:
            redirect_origin: Alternate origin to hand the session to after
                login (see ``apps.devices``); the canonical origin means none
            redirect_path: Path on ``redirect_origin``, sanitized to ``/``
                when unsafe

        Raises:
            InvalidOriginError: ``redirect_origin`` is malformed or not allowed
            NotSetUpError: No passkey has been registered yet
        """
        redirect_origin = self.origin_policy.redirect_origin(redirect_origin)
        redirect_path = normalize_redirect_path(redirect_path) if redirect_origin else None

        purge_expired_challenges()

        if not Passkey.objects.exists():
            raise NotSetUpError("No passkeys registered")

        challenge_id, state = begin_challenge(
            ChallengeKind.AUTHENTICATION,
            context={
                "redirect_origin": redirect_origin,
                "redirect_path": redirect_path,
            },
        )

        options = generate_authentication_options(
            rp_id=self.rp_id,
            challenge=state.challenge,
            timeout=self.timeout_ms,
            user_verification=UserVerificationRequirement.REQUIRED,
        )

        logger.info("passkey_authentication_started", redirect=redirect_origin is not None)
        return CeremonyOptions(
            challenge_id=challenge_id,
            options_json=json.loads(options_to_json(options)),
        )

    def verify_authentication(
        self,
        challenge_id: str,
        credential_json: dict[str, Any],
    ) -> AuthenticationResult:
        """
        Complete a login ceremony.

        Raises:
            ChallengeNotFoundError / ChallengeExpiredError / ChallengeKindMismatchError
            UnknownCredentialError: Credential ID missing or not registered
            VerificationFailedError: Signature, origin, user handle or
                counter check failed
        """
        state = consume_challenge(challenge_id, ChallengeKind.AUTHENTICATION)

        raw_id = credential_json.get("rawId") or credential_json.get("id")
        if not raw_id or not isinstance(raw_id, str):
            raise UnknownCredentialError("Missing credential ID in response")
        try:
            credential_id = base64url_to_bytes(raw_id)
        except ValueError:
            raise UnknownCredentialError("Malformed credential ID") from None

        passkey = get_passkey_by_credential_id(credential_id)
        self._check_user_handle(passkey, credential_json)

        try:
            verification = verify_authentication_response(
                credential=credential_json,
                expected_challenge=state.challenge,
                expected_rp_id=self.rp_id,
                expected_origin=self.origin,
                credential_public_key=bytes(passkey.public_key),
                credential_current_sign_count=passkey.sign_count,
                require_user_verification=True,
            )
        except (WebAuthnException, ValueError) as e:
            logger.warning(
                "passkey_authentication_verification_failed",
                passkey_id=passkey.id,
                error=str(e),
            )
            raise VerificationFailedError(f"Authentication verification failed: {e}") from e

        self._check_sign_count(passkey, verification.new_sign_count)

        record_passkey_use(
            passkey,
            sign_count=verification.new_sign_count,
            backup_state=bool(verification.credential_backed_up),
        )

        logger.info(
            "passkey_authentication_succeeded",
            user_id=str(passkey.user_id),
            passkey_id=passkey.id,
        )
        return AuthenticationResult(
            user=passkey.user,
            passkey=passkey,
            redirect_origin=state.context.get("redirect_origin"),
            redirect_path=state.context.get("redirect_path"),
        )

    def _check_user_handle(self, passkey: Passkey, credential_json: dict[str, Any]) -> None:
        """A discoverable assertion names its user; it must own the credential."""
        response = credential_json.get("response") or {}
        user_handle = response.get("userHandle")
        if not user_handle:
            return
        try:
            handle = base64url_to_bytes(user_handle)
        except (TypeError, ValueError):
            raise VerificationFailedError("Malformed user handle") from None
        if handle != passkey.user.id.bytes:
            logger.warning("passkey_user_handle_mismatch", passkey_id=passkey.id)
            raise VerificationFailedError("User handle does not match credential")

    def _check_sign_count(self, passkey: Passkey, new_sign_count: int) -> None:
        """
        Apply the configured signature-counter policy.

        The webauthn library already rejects a non-increasing counter when
        either side is non-zero; a zero counter is how authenticators say
        they do not keep one (``lenient``). ``strict`` demands an increasing
        counter on every login.
        """
        if self.sign_count_policy != SIGN_COUNT_POLICY_STRICT:
            return
        if new_sign_count <= passkey.sign_count:
            logger.warning(
                "passkey_sign_count_not_increasing",
                passkey_id=passkey.id,
                stored=passkey.sign_count,
                received=new_sign_count,
            )
            raise VerificationFailedError("Signature counter did not increase")


def get_passkey_service() -> PasskeyService:
    """Get a PasskeyService instance."""
    return PasskeyService()
