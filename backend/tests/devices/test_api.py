"""
API tests for device redirect endpoints.
"""

from urllib.parse import parse_qs, urlsplit

import pytest
from django.http import HttpResponse
from django.test import RequestFactory
from ninja.errors import HttpError

from apps.accounts.tokens import verify_session_token
from apps.core.auth import AuthContext
from apps.devices.api import complete_redirect_get, complete_redirect_post, start_redirect
from apps.devices.models import RedirectToken
from apps.devices.schemas import CompleteRedirectRequest, StartRedirectRequest
from apps.devices.services import create_redirect
from tests.conftest import make_request_with_auth


def _token(user, origin: str = "http://fujin:3000", path: str = "/notes") -> str:
    return parse_qs(urlsplit(create_redirect(user, origin, path)).query)["token"][0]


@pytest.mark.django_db
class TestStartRedirectEndpoint:
    """Tests for start_redirect endpoint."""

    def test_returns_redirect_url(self, request_factory: RequestFactory, user) -> None:
        request = make_request_with_auth(request_factory.post("/"), AuthContext(user=user))

        response = start_redirect(
            request,
            StartRedirectRequest(redirect_origin="http://fujin:3000", redirect_path="/notes"),
        )

        assert response.redirect_url.startswith("http://fujin:3000/api/auth/redirect/complete?token=")
        assert RedirectToken.objects.get().user_id == user.id

    def test_disallowed_origin_is_400(self, request_factory: RequestFactory, user) -> None:
        request = make_request_with_auth(request_factory.post("/"), AuthContext(user=user))

        with pytest.raises(HttpError) as exc_info:
            start_redirect(request, StartRedirectRequest(redirect_origin="http://evil:3000"))

        assert exc_info.value.status_code == 400
        assert not RedirectToken.objects.exists()

    def test_requires_auth(self, request_factory: RequestFactory, db) -> None:
        request = make_request_with_auth(request_factory.post("/"), AuthContext())

        with pytest.raises(HttpError) as exc_info:
            start_redirect(request, StartRedirectRequest(redirect_origin="http://fujin:3000"))

        assert exc_info.value.status_code == 401


@pytest.mark.django_db
class TestCompleteRedirectEndpoints:
    """Tests for GET and POST redirect/complete."""

    def test_get_sets_cookie_and_redirects(self, request_factory: RequestFactory, user) -> None:
        token = _token(user)
        request = request_factory.get("/api/auth/redirect/complete", HTTP_HOST="fujin:3000")

        response = complete_redirect_get(request, token)

        assert response.status_code == 302
        assert response["Location"] == "/notes"
        cookie = response.cookies["den_session"]
        assert verify_session_token(cookie.value) == str(user.id)
        assert cookie["secure"] == ""

    def test_post_returns_user_and_path(self, request_factory: RequestFactory, user) -> None:
        token = _token(user)
        request = request_factory.post("/api/auth/redirect/complete", HTTP_HOST="fujin:3000")
        response = HttpResponse()

        result = complete_redirect_post(request, response, CompleteRedirectRequest(token=token))

        assert result.user_name == user.name
        assert result.redirect_path == "/notes"
        assert response.cookies["den_session"].value

    def test_reuse_is_404(self, request_factory: RequestFactory, user) -> None:
        token = _token(user)
        complete_redirect_get(request_factory.get("/", HTTP_HOST="fujin:3000"), token)

        with pytest.raises(HttpError) as exc_info:
            complete_redirect_get(request_factory.get("/", HTTP_HOST="fujin:3000"), token)

        assert exc_info.value.status_code == 404

    def test_wrong_host_is_400(self, request_factory: RequestFactory, user) -> None:
        token = _token(user)
        request = request_factory.get("/", HTTP_HOST="den.example.com", HTTP_X_FORWARDED_PROTO="https")

        with pytest.raises(HttpError) as exc_info:
            complete_redirect_get(request, token)

        assert exc_info.value.status_code == 400

    def test_garbage_token_is_400(self, request_factory: RequestFactory, db) -> None:
        request = request_factory.post("/", HTTP_HOST="fujin:3000")

        with pytest.raises(HttpError) as exc_info:
            complete_redirect_post(request, HttpResponse(), CompleteRedirectRequest(token="garbage"))

        assert exc_info.value.status_code == 400
