"""
API tests for session endpoints.
"""

import pytest
from django.http import HttpResponse
from django.test import Client, RequestFactory
from ninja.errors import HttpError

from apps.accounts.api import current_user, logout
from apps.accounts.tokens import issue_session_token
from apps.core.auth import AuthContext
from tests.conftest import make_request_with_auth


@pytest.mark.django_db
class TestCurrentUserEndpoint:
    """Tests for GET /auth/me."""

    def test_returns_user(self, request_factory: RequestFactory, user) -> None:
        request = make_request_with_auth(request_factory.get("/"), AuthContext(user=user))

        response = current_user(request)

        assert response.user_id == str(user.id)
        assert response.user_name == "alice"

    def test_requires_auth(self, request_factory: RequestFactory) -> None:
        request = make_request_with_auth(request_factory.get("/"), AuthContext())

        with pytest.raises(HttpError) as exc_info:
            current_user(request)

        assert exc_info.value.status_code == 401

    def test_cookie_through_http_stack(self, api_client: Client, user) -> None:
        api_client.cookies["den_session"] = issue_session_token(user.id)

        response = api_client.get("/api/auth/me", HTTP_HOST="localhost:3000")

        assert response.status_code == 200
        assert response.json() == {"user_id": str(user.id), "user_name": "alice"}

    def test_bearer_through_http_stack(self, api_client: Client, user) -> None:
        response = api_client.get(
            "/api/auth/me",
            HTTP_HOST="localhost:3000",
            HTTP_AUTHORIZATION=f"Bearer {issue_session_token(user.id)}",
        )

        assert response.status_code == 200

    def test_invalid_cookie_through_http_stack(self, api_client: Client, user) -> None:
        api_client.cookies["den_session"] = "garbage"

        response = api_client.get("/api/auth/me", HTTP_HOST="localhost:3000")

        assert response.status_code == 401


class TestLogoutEndpoint:
    """Tests for POST /auth/logout."""

    def test_clears_cookie(self, request_factory: RequestFactory) -> None:
        response = HttpResponse()

        result = logout(request_factory.post("/"), response)

        assert result.success is True
        assert response.cookies["den_session"]["max-age"] == 0
