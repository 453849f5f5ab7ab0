"""
Tests for user services.
"""

import uuid

import pytest

from apps.accounts.exceptions import UserAlreadyExistsError
from apps.accounts.models import User
from apps.accounts.services import create_user, get_local_user, get_user


@pytest.mark.django_db
class TestUserServices:
    """Tests for local user lookups and creation."""

    def test_no_user_before_setup(self) -> None:
        assert get_local_user() is None

    def test_create_user_with_id(self) -> None:
        user_id = uuid.uuid4()

        user = create_user("alice", user_id=user_id)

        assert user.id == user_id
        assert get_local_user() == user

    def test_second_user_is_rejected(self) -> None:
        create_user("alice")

        with pytest.raises(UserAlreadyExistsError):
            create_user("bob")

        assert User.objects.count() == 1

    def test_get_user(self) -> None:
        user = create_user("alice")

        assert get_user(str(user.id)) == user
        assert get_user(uuid.uuid4()) is None

    def test_get_user_tolerates_malformed_id(self) -> None:
        assert get_user("not-a-uuid") is None
