"""
API tests for passkey endpoints.

Endpoints are called directly with RequestFactory requests, mirroring how
Django Ninja invokes them.
"""

import pytest
from django.http import HttpResponse
from django.test import RequestFactory
from ninja.errors import HttpError

from apps.accounts.tokens import issue_session_token, verify_session_token
from apps.core.auth import AuthContext
from apps.devices.models import RedirectToken
from apps.passkeys.api import (
    delete_user_passkey,
    list_user_passkeys,
    login_begin,
    login_complete,
    register_begin,
    register_complete,
    rename_user_passkey,
)
from apps.passkeys.models import Passkey
from apps.passkeys.schemas import (
    AuthenticationCredential,
    LoginBeginRequest,
    LoginCompleteRequest,
    PasskeyRenameRequest,
    RegisterBeginRequest,
    RegisterCompleteRequest,
    RegistrationCredential,
)
from tests.conftest import make_request_with_auth
from tests.passkeys.authenticator import SoftwareAuthenticator
from tests.passkeys.factories import PasskeyFactory


def _options(begin_response) -> dict:
    return begin_response.options.model_dump(mode="json", by_alias=True, exclude_none=True)


def _register(request_factory: RequestFactory, authenticator: SoftwareAuthenticator, **auth):
    request = request_factory.post("/api/auth/register/begin", **auth)
    begin = register_begin(request, RegisterBeginRequest(user_name="alice", passkey_name="laptop"))
    credential = RegistrationCredential.model_validate(authenticator.create(_options(begin)))

    response = HttpResponse()
    result = register_complete(
        request_factory.post("/api/auth/register/complete", **auth),
        response,
        RegisterCompleteRequest(challenge_id=begin.challenge_id, credential=credential),
    )
    return result, response


def _login(
    request_factory: RequestFactory,
    authenticator: SoftwareAuthenticator,
    payload: LoginBeginRequest | None = None,
    **extra,
):
    begin = login_begin(request_factory.post("/api/auth/login/begin"), payload or LoginBeginRequest())
    credential = AuthenticationCredential.model_validate(authenticator.get(_options(begin)))

    response = HttpResponse()
    result = login_complete(
        request_factory.post("/api/auth/login/complete", **extra),
        response,
        LoginCompleteRequest(challenge_id=begin.challenge_id, credential=credential),
    )
    return begin, credential, result, response


@pytest.fixture
def authenticator() -> SoftwareAuthenticator:
    return SoftwareAuthenticator()


@pytest.mark.django_db
class TestRegistrationEndpoints:
    """Tests for register/begin and register/complete."""

    def test_first_registration_sets_session_cookie(
        self, request_factory: RequestFactory, authenticator: SoftwareAuthenticator
    ) -> None:
        result, response = _register(request_factory, authenticator)

        assert result.user_name == "alice"
        assert result.is_new_user is True
        cookie = response.cookies["den_session"]
        assert cookie["httponly"] is True
        assert cookie["samesite"] == "Strict"
        assert verify_session_token(cookie.value) == str(Passkey.objects.get().user_id)

    def test_begin_response_is_tagged_and_encoded(self, request_factory: RequestFactory, db) -> None:
        request = request_factory.post("/api/auth/register/begin")

        begin = register_begin(request, RegisterBeginRequest(user_name="alice", passkey_name="laptop"))

        assert begin.kind == "registration"
        dumped = begin.model_dump(mode="json", by_alias=True)
        assert isinstance(dumped["options"]["challenge"], str)
        assert isinstance(dumped["options"]["user"]["id"], str)
        assert "pubKeyCredParams" in dumped["options"]

    def test_empty_names_are_400_before_setup(self, request_factory: RequestFactory, db) -> None:
        with pytest.raises(HttpError) as exc_info:
            register_begin(request_factory.post("/"), RegisterBeginRequest())

        assert exc_info.value.status_code == 400

    def test_begin_after_setup_is_401(
        self, request_factory: RequestFactory, authenticator: SoftwareAuthenticator
    ) -> None:
        _register(request_factory, authenticator)

        with pytest.raises(HttpError) as exc_info:
            register_begin(
                request_factory.post("/"),
                RegisterBeginRequest(user_name="mallory", passkey_name="laptop"),
            )

        assert exc_info.value.status_code == 401

    def test_invalid_session_cookie_is_401(
        self, request_factory: RequestFactory, authenticator: SoftwareAuthenticator
    ) -> None:
        _register(request_factory, authenticator)
        request = request_factory.post("/")
        request.COOKIES["den_session"] = "garbage"

        with pytest.raises(HttpError) as exc_info:
            register_begin(request, RegisterBeginRequest(passkey_name="phone"))

        assert exc_info.value.status_code == 401

    def test_session_cookie_allows_adding_passkey(
        self, request_factory: RequestFactory, authenticator: SoftwareAuthenticator
    ) -> None:
        _register(request_factory, authenticator)
        user_id = Passkey.objects.get().user_id
        cookie = {"HTTP_COOKIE": f"den_session={issue_session_token(user_id)}"}

        second, response = _register(request_factory, SoftwareAuthenticator(), **cookie)

        assert second.is_new_user is False
        assert "den_session" not in response.cookies
        assert Passkey.objects.count() == 2

    def test_unknown_challenge_is_400(
        self, request_factory: RequestFactory, authenticator: SoftwareAuthenticator, db
    ) -> None:
        options = {
            "challenge": "AAAA",
            "user": {"id": "AAAA"},
        }
        credential = RegistrationCredential.model_validate(authenticator.create(options))

        with pytest.raises(HttpError) as exc_info:
            register_complete(
                request_factory.post("/"),
                HttpResponse(),
                RegisterCompleteRequest(challenge_id="missing", credential=credential),
            )

        assert exc_info.value.status_code == 400


@pytest.mark.django_db
class TestLoginEndpoints:
    """Tests for login/begin and login/complete."""

    def test_login_sets_cookie(
        self, request_factory: RequestFactory, authenticator: SoftwareAuthenticator
    ) -> None:
        _register(request_factory, authenticator)

        begin, _, result, response = _login(request_factory, authenticator)

        assert begin.kind == "authentication"
        assert result.user_name == "alice"
        assert result.redirect_url is None
        assert response.cookies["den_session"].value

    def test_cookie_is_secure_behind_https_proxy(
        self, request_factory: RequestFactory, authenticator: SoftwareAuthenticator
    ) -> None:
        _register(request_factory, authenticator)

        *_, response = _login(
            request_factory,
            authenticator,
            HTTP_HOST="den.example.com",
            HTTP_X_FORWARDED_PROTO="https",
        )

        assert response.cookies["den_session"]["secure"] is True

    def test_replay_is_400(
        self, request_factory: RequestFactory, authenticator: SoftwareAuthenticator
    ) -> None:
        _register(request_factory, authenticator)
        begin, credential, _, _ = _login(request_factory, authenticator)

        with pytest.raises(HttpError) as exc_info:
            login_complete(
                request_factory.post("/"),
                HttpResponse(),
                LoginCompleteRequest(challenge_id=begin.challenge_id, credential=credential),
            )

        assert exc_info.value.status_code == 400

    def test_unknown_credential_is_401(
        self, request_factory: RequestFactory, authenticator: SoftwareAuthenticator
    ) -> None:
        _register(request_factory, authenticator)

        with pytest.raises(HttpError) as exc_info:
            _login(request_factory, SoftwareAuthenticator())

        assert exc_info.value.status_code == 401

    def test_not_set_up_is_400(self, request_factory: RequestFactory, db) -> None:
        with pytest.raises(HttpError) as exc_info:
            login_begin(request_factory.post("/"), LoginBeginRequest())

        assert exc_info.value.status_code == 400

    def test_disallowed_redirect_origin_is_400(
        self, request_factory: RequestFactory, authenticator: SoftwareAuthenticator
    ) -> None:
        _register(request_factory, authenticator)

        with pytest.raises(HttpError) as exc_info:
            login_begin(
                request_factory.post("/"),
                LoginBeginRequest(redirect_origin="http://evil.example.com"),
            )

        assert exc_info.value.status_code == 400

    def test_redirect_login_returns_handoff_url(
        self, request_factory: RequestFactory, authenticator: SoftwareAuthenticator
    ) -> None:
        _register(request_factory, authenticator)

        *_, result, _ = _login(
            request_factory,
            authenticator,
            LoginBeginRequest(redirect_origin="http://fujin:3000", redirect_path="/notes"),
        )

        assert result.redirect_url.startswith("http://fujin:3000/api/auth/redirect/complete?token=")
        token = RedirectToken.objects.get()
        assert token.target_origin == "http://fujin:3000"
        assert token.target_path == "/notes"


@pytest.mark.django_db
class TestPasskeyManagementEndpoints:
    """Tests for listing, renaming and deleting passkeys."""

    def test_list(self, request_factory: RequestFactory, user_with_passkey) -> None:
        user, passkey = user_with_passkey
        request = make_request_with_auth(request_factory.get("/"), AuthContext(user=user))

        items = list_user_passkeys(request)

        assert [(i.id, i.name, i.last_used) for i in items] == [(passkey.id, "laptop", None)]
        assert items[0].created == passkey.created_at

    def test_list_requires_auth(self, request_factory: RequestFactory, db) -> None:
        request = make_request_with_auth(request_factory.get("/"), AuthContext())

        with pytest.raises(HttpError) as exc_info:
            list_user_passkeys(request)

        assert exc_info.value.status_code == 401

    def test_rename(self, request_factory: RequestFactory, user_with_passkey) -> None:
        user, passkey = user_with_passkey
        request = make_request_with_auth(request_factory.patch("/"), AuthContext(user=user))

        item = rename_user_passkey(request, passkey.id, PasskeyRenameRequest(name="desktop"))

        assert item.name == "desktop"

    def test_rename_missing_is_404(self, request_factory: RequestFactory, user) -> None:
        request = make_request_with_auth(request_factory.patch("/"), AuthContext(user=user))

        with pytest.raises(HttpError) as exc_info:
            rename_user_passkey(request, 9999, PasskeyRenameRequest(name="desktop"))

        assert exc_info.value.status_code == 404

    def test_delete_last_is_409(self, request_factory: RequestFactory, user_with_passkey) -> None:
        user, passkey = user_with_passkey
        request = make_request_with_auth(request_factory.delete("/"), AuthContext(user=user))

        with pytest.raises(HttpError) as exc_info:
            delete_user_passkey(request, passkey.id)

        assert exc_info.value.status_code == 409

    def test_delete(self, request_factory: RequestFactory, user_with_passkey) -> None:
        user, passkey = user_with_passkey
        PasskeyFactory.create(user=user)
        request = make_request_with_auth(request_factory.delete("/"), AuthContext(user=user))

        assert delete_user_passkey(request, passkey.id).success is True
        assert not Passkey.objects.filter(id=passkey.id).exists()

    def test_delete_missing_is_404(self, request_factory: RequestFactory, user_with_passkey) -> None:
        user, _ = user_with_passkey
        request = make_request_with_auth(request_factory.delete("/"), AuthContext(user=user))

        with pytest.raises(HttpError) as exc_info:
            delete_user_passkey(request, 9999)

        assert exc_info.value.status_code == 404


@pytest.mark.django_db
class TestRequestValidation:
    """Request bodies going through the full HTTP stack."""

    HOST = {"HTTP_HOST": "localhost:3000"}

    def _post(self, api_client, path: str, body: dict):
        return api_client.post(path, data=body, content_type="application/json", **self.HOST)

    def test_register_begin_after_setup_is_unauthorized_whatever_the_body(
        self, api_client, user
    ) -> None:
        response = self._post(
            api_client, "/api/auth/register/begin", {"user_name": "a" * 101, "passkey_name": "x"}
        )

        assert response.status_code == 401

    def test_register_begin_long_user_name(self, api_client) -> None:
        response = self._post(
            api_client, "/api/auth/register/begin", {"user_name": "a" * 101, "passkey_name": "x"}
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "User name must be at most 100 characters"}

    def test_malformed_field_is_bad_request(self, api_client) -> None:
        response = self._post(
            api_client, "/api/auth/register/begin", {"user_name": ["alice"], "passkey_name": "x"}
        )

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert isinstance(detail, str)
        assert detail.startswith("user_name: ")

    def test_login_begin_without_body(self, api_client, user_with_passkey) -> None:
        response = api_client.post("/api/auth/login/begin", **self.HOST)

        assert response.status_code == 200
        assert response.json()["kind"] == "authentication"
        assert response.json()["challenge_id"]

    def test_login_begin_with_empty_json_body(self, api_client, user_with_passkey) -> None:
        response = api_client.post(
            "/api/auth/login/begin", data="", content_type="application/json", **self.HOST
        )

        assert response.status_code == 200

    def test_login_begin_body_is_read(self, api_client, user_with_passkey) -> None:
        response = self._post(
            api_client, "/api/auth/login/begin", {"redirect_origin": "http://evil.example:1"}
        )

        assert response.status_code == 400

    def test_malformed_base64_credential_is_bad_request(
        self, api_client, user_with_passkey
    ) -> None:
        begin = api_client.post("/api/auth/login/begin", **self.HOST).json()

        response = self._post(
            api_client,
            "/api/auth/login/complete",
            {
                "challenge_id": begin["challenge_id"],
                "credential": {
                    "id": "!!",
                    "rawId": "!!",
                    "type": "public-key",
                    "response": {
                        "clientDataJSON": "!!",
                        "authenticatorData": "!!",
                        "signature": "!!",
                    },
                },
            },
        )

        assert response.status_code == 400
        assert isinstance(response.json()["detail"], str)
