"""
STS Enforcer Locators

Hosts are case-insensitive domain names without a scheme; Unicode names
are converted to their IDNA A-label form. The security
service wants a full locator, so a bare host is wrapped as http://<host>/
(the same shape the browser's site security service is fed).

A host that cannot become a locator is a ConfigurationError: policy on an
unparseable host can never be honored, so it is never stored.
"""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from sts_enforcer.core.errors import ConfigurationError


_LABEL_RE = re.compile(r"^[a-z0-9_](?:[a-z0-9_-]*[a-z0-9_])?$")
_MAX_HOST_LENGTH = 253
_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


@dataclass(frozen=True)
class Locator:
    """A parsed network locator. Only scheme and host matter for STS."""
    scheme: str
    host: str
    port: Optional[int] = None

    @property
    def spec(self) -> str:
        netloc = self.host if self.port is None else f"{self.host}:{self.port}"
        return f"{self.scheme}://{netloc}/"

    def __str__(self) -> str:
        return self.spec


def normalize_host(host: str) -> str:
    """Canonical store/service key for a host."""
    if host is None:
        raise ConfigurationError("Host is missing")
    host = host.strip().lower()
    if host.endswith("."):
        host = host[:-1]
    if not host.isascii():
        # Internationalized names are keyed by their A-labels (punycode).
        try:
            host = host.encode("idna").decode("ascii")
        except UnicodeError as e:
            raise ConfigurationError(f"Invalid internationalized host {host!r}: {e}") from e
    return host


def _check_hostname(host: str, original: str) -> None:
    if not host:
        raise ConfigurationError(f"No hostname in {original!r}")
    if len(host) > _MAX_HOST_LENGTH:
        raise ConfigurationError(f"Hostname too long: {original!r}")
    for label in host.split("."):
        if not label or len(label) > 63 or not _LABEL_RE.match(label):
            raise ConfigurationError(f"Invalid hostname {host!r} in {original!r}")


def to_locator(value) -> Locator:
    """Build a Locator from a bare host or an http(s) URL.

    Locators pass through untouched. Strings without an http:// or
    https:// prefix are treated as bare hosts.
    """
    if isinstance(value, Locator):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"Cannot build a locator from {value!r}")

    raw = value.strip()
    if not _SCHEME_RE.match(raw):
        if any(c in raw for c in "/?#@ \t"):
            raise ConfigurationError(f"Not a bare host: {value!r}")
        raw = f"http://{raw}/"

    parts = urlsplit(raw)
    if parts.scheme.lower() not in ("http", "https"):
        raise ConfigurationError(f"Unsupported scheme in {value!r}")
    try:
        port = parts.port
    except ValueError as e:
        raise ConfigurationError(f"Bad port in {value!r}: {e}") from e

    # IPv6 literals come back without brackets; accept them as-is.
    hostname = parts.hostname or ""
    if ":" in hostname:
        return Locator(scheme=parts.scheme.lower(), host=hostname, port=port)

    host = normalize_host(hostname)
    _check_hostname(host, value)
    return Locator(scheme=parts.scheme.lower(), host=host, port=port)
