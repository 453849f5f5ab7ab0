"""
Shared pytest fixtures for all tests.

Factories
---------
Import factories directly from their modules:

    from tests.accounts.factories import UserFactory
    from tests.passkeys.factories import PasskeyFactory, AuthChallengeFactory
    from tests.devices.factories import RedirectTokenFactory

Example usage:

    @pytest.mark.django_db
    def test_something():
        user = UserFactory.create(name="alice")
        PasskeyFactory.create(user=user)
"""

from collections.abc import Callable
from typing import Any

import pytest
from django.test import Client, RequestFactory
from django.test.client import WSGIRequest  # type: ignore[attr-defined]

from apps.accounts.tokens import get_signing_secret
from apps.core.auth import AuthContext
from apps.core.origin import get_origin_policy


@pytest.fixture(autouse=True)
def _reset_process_caches():
    """
    Drop per-process caches between tests.

    The signing secret lives in the (per-test) database and the origin
    policy is built from settings that tests override.
    """
    get_signing_secret.cache_clear()
    get_origin_policy.cache_clear()
    yield
    get_signing_secret.cache_clear()
    get_origin_policy.cache_clear()


def make_request_with_auth(request: WSGIRequest, auth: AuthContext) -> WSGIRequest:
    """
    Set auth on a request the way the ninja auth classes would.

    Example:
        request = request_factory.get("/api/auth/passkeys")
        request = make_request_with_auth(request, AuthContext(user=user))
    """
    request.auth = auth  # type: ignore[attr-defined]
    return request


@pytest.fixture
def request_factory() -> RequestFactory:
    """
    Django request factory for unit testing views.

    Use this to call Django Ninja endpoint functions directly without going
    through the full HTTP stack.
    """
    return RequestFactory()


@pytest.fixture
def api_client() -> Client:
    """
    Django test client for full HTTP request/response cycle tests.

    Example:
        def test_api_returns_200(api_client):
            response = api_client.get("/api/health")
            assert response.status_code == 200
    """
    return Client()


@pytest.fixture
def authenticated_request(request_factory: RequestFactory) -> Callable[..., WSGIRequest]:
    """
    Factory fixture for creating authenticated requests.

    Example:
        def test_authenticated_endpoint(authenticated_request, user):
            request = authenticated_request(user, method="post", path="/api/auth/redirect/start")
            result = my_endpoint(request, payload)
    """

    def _make_request(
        user: Any,
        method: str = "get",
        path: str = "/",
        data: dict | None = None,
        **extra: Any,
    ) -> WSGIRequest:
        method_func = getattr(request_factory, method.lower())
        kwargs: dict[str, Any] = dict(extra)
        if data is not None:
            kwargs["data"] = data
            kwargs["content_type"] = "application/json"
        request = method_func(path, **kwargs)
        return make_request_with_auth(request, AuthContext(user=user))

    return _make_request


@pytest.fixture
def user(db):
    """The single local user."""
    from tests.accounts.factories import UserFactory

    return UserFactory.create(name="alice")


@pytest.fixture
def user_with_passkey(user):
    """The local user with one registered passkey."""
    from tests.passkeys.factories import PasskeyFactory

    return user, PasskeyFactory.create(user=user, name="laptop")
