"""
Core middleware.
"""

import time
import uuid
from collections.abc import Callable
from urllib.parse import parse_qsl, urlencode

from django.http import HttpRequest, HttpResponse
from django.http.response import HttpResponseRedirectBase

from apps.core.logging import bind_contextvars, clear_contextvars, get_logger
from apps.core.origin import get_origin_policy, origin_host
from apps.core.utils import get_client_ip

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Pages where a passkey ceremony runs; passkeys are bound to the canonical
# origin, so these must always be served from it.
LOGIN_PATH = "/login"
SETUP_PATH = "/setup"


class HttpResponseTemporaryRedirect(HttpResponseRedirectBase):
    status_code = 307


def _path_matches(path: str, route: str) -> bool:
    return path == route or path.startswith(f"{route}/")


class RequestContextMiddleware:
    """
    Binds request-scoped logging context and logs one line per request.

    Reuses an incoming ``X-Request-ID`` so logs can be correlated with the
    reverse proxy, and echoes it on the response.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        request_id = request.META.get("HTTP_X_REQUEST_ID") or uuid.uuid4().hex
        clear_contextvars()
        bind_contextvars(
            request_id=request_id,
            **{
                "http.method": request.method,
                "http.url_details.path": request.path,
                "network.client.ip": get_client_ip(request),
            },
        )
        start = time.perf_counter()
        try:
            response = self.get_response(request)
            logger.info(
                "request_completed",
                duration_ms=(time.perf_counter() - start) * 1000,
                **{"http.status_code": response.status_code},
            )
            response[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_contextvars()


class CanonicalAuthOriginMiddleware:
    """
    Redirects the login and setup pages to the canonical origin.

    A user opening ``/login`` on an allowed alternate host (for example the
    LAN address of the dashboard) is sent to the canonical ``/login`` with
    ``redirect_origin`` set to the host they came from, so that after the
    passkey ceremony the session is handed back through the device redirect
    flow. Client-supplied ``redirect_origin`` values are always dropped;
    only the origin the request actually arrived on is forwarded.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        path = request.path
        is_login = _path_matches(path, LOGIN_PATH)
        if not is_login and not _path_matches(path, SETUP_PATH):
            return self.get_response(request)

        policy = get_origin_policy()
        origin = policy.origin_of(request.META)
        if origin is None or origin == policy.rp_origin:
            return self.get_response(request)

        params: list[tuple[str, str]] = []
        has_path = False
        for key, value in parse_qsl(request.META.get("QUERY_STRING", ""), keep_blank_values=True):
            if key == "redirect_origin":
                continue
            if key == "redirect_path":
                if not is_login:
                    continue
                has_path = True
            params.append((key, value))

        if is_login and policy.is_allowed_host(origin_host(origin)):
            params.append(("redirect_origin", origin))
            if not has_path:
                params.append(("redirect_path", "/"))

        query = urlencode(params)
        location = f"{policy.rp_origin}{path}{'?' + query if query else ''}"
        logger.info("canonical_origin_redirect", from_origin=origin, location=location)
        return HttpResponseTemporaryRedirect(location)
