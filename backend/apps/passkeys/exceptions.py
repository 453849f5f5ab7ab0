"""
Exceptions for passkeys app.

Raised by the challenge store, credential store and ceremony services;
mapped to HTTP status codes in ``apps.passkeys.api``.
"""


class PasskeyError(Exception):
    """Base exception for passkey errors."""

    pass


class InvalidInputError(PasskeyError):
    """Request fields are missing or empty."""

    pass


class AlreadySetUpError(PasskeyError):
    """
    Registration attempted without a session while a user already exists.

    Surfaced as 401 so unauthenticated probes cannot tell it apart from an
    expired session.
    """

    pass


class NotSetUpError(PasskeyError):
    """Login attempted before any passkey has been registered."""

    pass


class ChallengeError(PasskeyError):
    """Base exception for challenge store errors."""

    pass


class ChallengeNotFoundError(ChallengeError):
    """Challenge is unknown or was already consumed."""

    pass


class ChallengeExpiredError(ChallengeError):
    """Challenge existed but its TTL has passed."""

    pass


class ChallengeKindMismatchError(ChallengeError):
    """Challenge belongs to the other ceremony type."""

    pass


class VerificationFailedError(PasskeyError):
    """Attestation/assertion failed cryptographic or origin verification."""

    pass


class UnknownCredentialError(PasskeyError):
    """Assertion refers to a credential that is not registered."""

    pass


class PasskeyNotFoundError(PasskeyError):
    """Passkey does not exist or is not owned by the caller."""

    pass


class LastPasskeyError(PasskeyError):
    """Deleting the passkey would leave the account without any."""

    pass
