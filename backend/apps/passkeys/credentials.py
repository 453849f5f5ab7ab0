"""
Credential store: the user's registered passkeys.

Invariant: a user always keeps at least one passkey. Deletion checks this
in the same DELETE statement that removes the row, so two concurrent
deletions cannot both succeed and strip the last credential.
"""

from django.db import IntegrityError, transaction
from django.db.models import Exists, OuterRef, Value
from django.db.models.functions import Greatest
from django.utils import timezone

from apps.accounts.models import User
from apps.core.logging import get_logger
from apps.passkeys.exceptions import (
    InvalidInputError,
    LastPasskeyError,
    PasskeyNotFoundError,
    UnknownCredentialError,
    VerificationFailedError,
)
from apps.passkeys.models import Passkey

logger = get_logger(__name__)

MAX_PASSKEY_NAME_LENGTH = 100
MAX_USER_NAME_LENGTH = 100


def clean_passkey_name(name: str | None) -> str:
    """
    Validate a user-supplied passkey name.

    Raises:
        InvalidInputError: If the name is empty or too long
    """
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidInputError("Passkey name is required")
    if len(cleaned) > MAX_PASSKEY_NAME_LENGTH:
        raise InvalidInputError(f"Passkey name must be at most {MAX_PASSKEY_NAME_LENGTH} characters")
    return cleaned


def clean_user_name(name: str | None) -> str:
    """
    Validate the user name chosen at first-time setup.

    Raises:
        InvalidInputError: If the name is empty or too long
    """
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidInputError("User name is required")
    if len(cleaned) > MAX_USER_NAME_LENGTH:
        raise InvalidInputError(f"User name must be at most {MAX_USER_NAME_LENGTH} characters")
    return cleaned


def list_passkeys(user: User) -> list[Passkey]:
    """List a user's passkeys, oldest first."""
    return list(Passkey.objects.filter(user=user).order_by("created_at", "id"))


def add_passkey(
    user: User,
    *,
    name: str,
    credential_id: bytes,
    public_key: bytes,
    sign_count: int = 0,
    aaguid: str = "",
    transports: list[str] | None = None,
    backup_eligible: bool = False,
    backup_state: bool = False,
) -> Passkey:
    """
    Store a newly registered credential.

    Raises:
        VerificationFailedError: If the credential ID is already registered
    """
    try:
        with transaction.atomic():
            passkey = Passkey.objects.create(
                user=user,
                name=name,
                credential_id=credential_id,
                public_key=public_key,
                sign_count=sign_count,
                aaguid=aaguid,
                transports=transports or [],
                backup_eligible=backup_eligible,
                backup_state=backup_state,
            )
    except IntegrityError:
        logger.warning("passkey_duplicate_credential", user_id=str(user.id))
        raise VerificationFailedError("This passkey is already registered") from None

    logger.info("passkey_added", user_id=str(user.id), passkey_id=passkey.id)
    return passkey


def get_passkey_by_credential_id(credential_id: bytes) -> Passkey:
    """
    Resolve the passkey an assertion refers to.

    Raises:
        UnknownCredentialError: If no passkey has this credential ID
    """
    passkey = Passkey.objects.select_related("user").filter(credential_id=credential_id).first()
    if passkey is None:
        raise UnknownCredentialError("Passkey not recognized")
    return passkey


def rename_passkey(user: User, passkey_id: int, name: str) -> Passkey:
    """
    Rename a passkey owned by ``user``.

    Raises:
        InvalidInputError: If the new name is empty
        PasskeyNotFoundError: If the passkey does not exist or belongs to someone else
    """
    cleaned = clean_passkey_name(name)
    updated = Passkey.objects.filter(id=passkey_id, user=user).update(name=cleaned)
    if updated == 0:
        raise PasskeyNotFoundError("Passkey not found")
    logger.info("passkey_renamed", user_id=str(user.id), passkey_id=passkey_id)
    return Passkey.objects.get(id=passkey_id)


def delete_passkey(user: User, passkey_id: int) -> None:
    """
    Delete a passkey owned by ``user`` unless it is the last one.

    Raises:
        PasskeyNotFoundError: If the passkey does not exist or belongs to someone else
        LastPasskeyError: If it is the user's only passkey
    """
    other_passkeys = Passkey.objects.filter(user_id=OuterRef("user_id")).exclude(id=OuterRef("id"))
    deleted, _ = (
        Passkey.objects.filter(id=passkey_id, user=user)
        .filter(Exists(other_passkeys))
        .delete()
    )
    if deleted:
        logger.info("passkey_deleted", user_id=str(user.id), passkey_id=passkey_id)
        return

    if Passkey.objects.filter(id=passkey_id, user=user).exists():
        raise LastPasskeyError("Cannot delete the last passkey")
    raise PasskeyNotFoundError("Passkey not found")


def record_passkey_use(passkey: Passkey, *, sign_count: int, backup_state: bool) -> None:
    """
    Persist the new signature counter and touch ``last_used_at`` after a login.

    The stored counter only moves forward: when two logins race, the one
    carrying the lower counter may finish last.
    """
    now = timezone.now()
    Passkey.objects.filter(id=passkey.id).update(
        sign_count=Greatest("sign_count", Value(sign_count)),
        backup_state=backup_state,
        last_used_at=now,
    )
    passkey.sign_count = max(passkey.sign_count, sign_count)
    passkey.backup_state = backup_state
    passkey.last_used_at = now
