"""
User services.

The dashboard supports exactly one local user. "Is setup complete" is
always answered from the database, never from process state, so it stays
correct across restarts and concurrent requests.
"""

import uuid

from django.db import IntegrityError, transaction

from apps.accounts.exceptions import UserAlreadyExistsError
from apps.accounts.models import User
from apps.core.logging import get_logger

logger = get_logger(__name__)


def get_local_user() -> User | None:
    """Return the local user, or None before setup."""
    return User.objects.first()


def get_user(user_id: str | uuid.UUID) -> User | None:
    """Look up a user by ID, tolerating malformed IDs."""
    try:
        return User.objects.filter(id=uuid.UUID(str(user_id))).first()
    except ValueError:
        return None


def create_user(name: str, user_id: uuid.UUID | None = None) -> User:
    """
    Create the local user.

    The single-slot unique constraint makes this safe against two
    registrations completing at the same time: the second insert fails.

    Raises:
        UserAlreadyExistsError: If a user already exists
    """
    try:
        with transaction.atomic():
            user = User.objects.create(id=user_id or uuid.uuid4(), name=name)
    except IntegrityError:
        logger.warning("user_create_conflict", user_name=name)
        raise UserAlreadyExistsError("A user already exists") from None

    logger.info("user_created", user_id=str(user.id))
    return user
