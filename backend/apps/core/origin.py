"""
Origin canonicalization and allow-list checks.

The dashboard has exactly one canonical origin (``WEBAUTHN_ORIGIN``) where
passkeys are bound, plus a short list of alternate hosts
(``WEBAUTHN_ALLOWED_HOSTS``) that may receive a session through the device
redirect flow. Every origin that crosses a trust boundary, whether a
client-supplied ``redirect_origin`` or the origin a request arrived on, is
normalized here before it is compared:

- scheme must be ``http`` or ``https``; no credentials in the authority
- host is lower-cased, default ports (80/443) are dropped
- paths, queries and fragments are discarded (origins only)

Matching is exact after normalization. Alternate hosts are matched on
``host[:port]`` and accept either scheme. There is no wildcard or suffix
matching: ``evil.example.com`` never matches ``example.com``.
"""

from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import SplitResult, urlsplit

from django.conf import settings
from django.core.signals import setting_changed
from django.dispatch import receiver

from apps.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}


class InvalidOriginError(Exception):
    """Raised when an origin is malformed or not on the allow-list."""

    pass


def _split(value: str) -> tuple[SplitResult, int | None] | None:
    try:
        parts = urlsplit(value.strip())
        port = parts.port
    except ValueError:
        return None
    return parts, port


def _host_with_port(hostname: str, port: int | None, scheme: str) -> str:
    host = hostname.lower()
    if ":" in host:
        host = f"[{host}]"
    if port is not None and port != DEFAULT_PORTS[scheme]:
        return f"{host}:{port}"
    return host


def normalize_origin(origin: str) -> str | None:
    """
    Normalize an origin to ``scheme://host[:port]``.

    Returns:
        The normalized origin, or None if the value is not a usable
        http(s) origin.
    """
    split = _split(origin)
    if split is None:
        return None
    parts, port = split
    if parts.scheme not in DEFAULT_PORTS or not parts.hostname:
        return None
    if parts.username is not None or parts.password is not None:
        return None
    return f"{parts.scheme}://{_host_with_port(parts.hostname, port, parts.scheme)}"


def origin_host(origin: str) -> str | None:
    """Return the normalized ``host[:port]`` part of an origin."""
    normalized = normalize_origin(origin)
    if normalized is None:
        return None
    return normalized.split("://", 1)[1]


def normalize_host(candidate: str) -> str | None:
    """
    Normalize an allow-list entry.

    Entries may be bare hosts (``fujin:3000``) or full origins
    (``https://den.example.com``); both collapse to ``host[:port]``.
    """
    candidate = candidate.strip()
    if not candidate:
        return None
    if "://" in candidate:
        return origin_host(candidate)
    if any(ch in candidate for ch in "/?#"):
        return None
    return origin_host(f"http://{candidate}")


def normalize_redirect_path(path: str | None) -> str:
    """
    Reduce a redirect path to a same-origin absolute path.

    Protocol-relative paths (``//evil.com``) and backslashes, which some
    browsers treat as slashes, fall back to ``/``.
    """
    if path is None:
        return "/"
    path = path.strip()
    if path.startswith("/") and not path.startswith("//") and "\\" not in path:
        return path
    return "/"


def _first_header_value(meta: dict, key: str) -> str | None:
    raw = meta.get(key)
    if not raw:
        return None
    value = str(raw).split(",")[0].strip()
    return value or None


def request_host(meta: dict) -> str | None:
    """Host the request was addressed to, honouring ``X-Forwarded-Host``."""
    return _first_header_value(meta, "HTTP_X_FORWARDED_HOST") or _first_header_value(
        meta, "HTTP_HOST"
    )


def request_origin(meta: dict, fallback_scheme: str) -> str | None:
    """
    Origin the request was made on.

    The scheme comes from ``X-Forwarded-Proto`` when a proxy set it,
    otherwise ``fallback_scheme``.
    """
    host = request_host(meta)
    if host is None:
        return None
    proto = _first_header_value(meta, "HTTP_X_FORWARDED_PROTO") or fallback_scheme
    return normalize_origin(f"{proto.lower()}://{host}")


def load_allowed_hosts(rp_origin: str, configured_hosts: list[str]) -> frozenset[str]:
    """Build the host allow-list: the canonical host plus valid configured entries."""
    hosts: set[str] = set()
    rp_host = origin_host(rp_origin)
    if rp_host:
        hosts.add(rp_host)
    for candidate in configured_hosts:
        normalized = normalize_host(candidate)
        if normalized is None:
            logger.warning("allowed_host_ignored", host=candidate)
            continue
        hosts.add(normalized)
    return frozenset(hosts)


@dataclass(frozen=True)
class OriginPolicy:
    """
    Canonical origin plus the allow-list of alternate hosts.

    Attributes:
        rp_origin: Normalized canonical origin (``WEBAUTHN_ORIGIN``)
        allowed_hosts: Normalized ``host[:port]`` entries, canonical host included
    """

    rp_origin: str
    allowed_hosts: frozenset[str]

    @property
    def rp_scheme(self) -> str:
        return self.rp_origin.split("://", 1)[0]

    @property
    def rp_host(self) -> str:
        return self.rp_origin.split("://", 1)[1]

    def is_canonical(self, origin: str | None) -> bool:
        return origin is not None and normalize_origin(origin) == self.rp_origin

    def is_allowed_host(self, host: str | None) -> bool:
        return host is not None and host in self.allowed_hosts

    def canonicalize(self, origin: str) -> str:
        """
        Normalize an origin and require it to be canonical or allowed.

        Raises:
            InvalidOriginError: If the origin is malformed or not allowed
        """
        normalized = normalize_origin(origin)
        if normalized is None:
            raise InvalidOriginError(f"Malformed origin: {origin!r}")
        if normalized == self.rp_origin:
            return self.rp_origin
        if not self.is_allowed_host(origin_host(normalized)):
            raise InvalidOriginError(f"Origin not allowed: {normalized}")
        return normalized

    def fallback_scheme(self, meta: dict) -> str:
        """
        Scheme to assume when no proxy reported one.

        The canonical host is served with the canonical scheme; alternate
        hosts are typically reached directly over plain http on the LAN.
        """
        host = request_host(meta)
        normalized = normalize_host(host) if host else None
        if normalized is None or normalized == self.rp_host:
            return self.rp_scheme
        return "http"

    def origin_of(self, meta: dict) -> str | None:
        """Normalized origin of a request, or None if it has no usable host."""
        return request_origin(meta, self.fallback_scheme(meta))

    def canonicalize_request(self, meta: dict) -> str:
        """
        Canonical form of the origin a request arrived on.

        Raises:
            InvalidOriginError: If the request host is missing or not allowed
        """
        origin = self.origin_of(meta)
        if origin is None:
            raise InvalidOriginError("Request has no usable host")
        return self.canonicalize(origin)

    def redirect_origin(self, origin: str | None) -> str | None:
        """
        Validate an optional ``redirect_origin`` for a login ceremony.

        The canonical origin itself needs no hand-off and maps to None.

        Raises:
            InvalidOriginError: If the origin is malformed or not allowed
        """
        if origin is None:
            return None
        canonical = self.canonicalize(origin)
        if canonical == self.rp_origin:
            return None
        return canonical


@lru_cache(maxsize=1)
def get_origin_policy() -> OriginPolicy:
    """Origin policy built from settings; cached for the process lifetime."""
    configured = getattr(settings, "WEBAUTHN_ORIGIN", "http://localhost:3000")
    rp_origin = normalize_origin(configured)
    if rp_origin is None:
        raise ValueError(f"WEBAUTHN_ORIGIN is not a valid origin: {configured!r}")
    return OriginPolicy(
        rp_origin=rp_origin,
        allowed_hosts=load_allowed_hosts(
            rp_origin, list(getattr(settings, "WEBAUTHN_ALLOWED_HOSTS", []))
        ),
    )


@receiver(setting_changed)
def _reset_origin_policy(*, setting: str, **kwargs) -> None:
    if setting in ("WEBAUTHN_ORIGIN", "WEBAUTHN_ALLOWED_HOSTS"):
        get_origin_policy.cache_clear()
