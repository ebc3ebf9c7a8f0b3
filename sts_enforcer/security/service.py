"""
STS Enforcer Security Service

The subsystem that actually enforces HTTPS-only transport. The engine
consumes it through three calls and never relies on anything else:

    enable(locator, directive, ephemeral)
    disable(locator, ephemeral)
    is_enforced(locator, ephemeral) -> bool

It keeps two caches: persistent, and ephemeral (private browsing). The
ephemeral one may be dropped by the host environment at any time.
Neither cache records who asked for an entry.

Production delegates to the browser's site security service. This is an
in-memory implementation with the same semantics for development and
testing.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from sts_enforcer.core.errors import BackendUnavailable
from sts_enforcer.core.locator import Locator, to_locator

log = logging.getLogger(__name__)


class SiteSecurityService(ABC):
    """Interface of the enforcing subsystem."""

    @abstractmethod
    def enable(self, locator: Locator, directive: str, ephemeral: bool) -> None:
        ...

    @abstractmethod
    def disable(self, locator: Locator, ephemeral: bool) -> None:
        ...

    @abstractmethod
    def is_enforced(self, locator: Locator, ephemeral: bool) -> bool:
        ...


@dataclass
class StsDirective:
    """A parsed Strict-Transport-Security directive string."""
    max_age: int
    include_subdomains: bool = False

    @classmethod
    def parse(cls, value: str) -> "StsDirective":
        """Parse "max-age=N; includeSubDomains" (order and case free).

        A missing or unparseable max-age yields 0, which removes state.
        """
        max_age = 0
        include_subdomains = False
        for directive in value.split(";"):
            directive = directive.strip().lower()
            if directive == "includesubdomains":
                include_subdomains = True
            elif directive.startswith("max-age="):
                try:
                    max_age = int(directive[8:].strip().strip('"'))
                except ValueError:
                    log.warning("Invalid max-age in STS directive: %s", directive)
        return cls(max_age=max(max_age, 0), include_subdomains=include_subdomains)


@dataclass
class _StsState:
    expires: float
    include_subdomains: bool


class InMemorySiteSecurityService(SiteSecurityService):
    """Dict-based site security service with persistent and ephemeral caches."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.time
        self._caches: dict[bool, dict[str, _StsState]] = {False: {}, True: {}}
        self._available = True

    def _cache(self, ephemeral: bool) -> dict[str, _StsState]:
        if not self._available:
            raise BackendUnavailable("Site security service has shut down")
        return self._caches[bool(ephemeral)]

    # --------------------------------------------------------
    # SiteSecurityService
    # --------------------------------------------------------

    def enable(self, locator: Locator, directive: str, ephemeral: bool) -> None:
        locator = to_locator(locator)
        cache = self._cache(ephemeral)
        parsed = StsDirective.parse(directive)
        if parsed.max_age == 0:
            cache.pop(locator.host, None)
            return
        cache[locator.host] = _StsState(
            expires=self._clock() + parsed.max_age,
            include_subdomains=parsed.include_subdomains,
        )

    def disable(self, locator: Locator, ephemeral: bool) -> None:
        locator = to_locator(locator)
        self._cache(ephemeral).pop(locator.host, None)

    def is_enforced(self, locator: Locator, ephemeral: bool) -> bool:
        """Exact host first, then each parent label with includeSubDomains."""
        locator = to_locator(locator)
        host = locator.host
        state = self._live(host, ephemeral)
        if state is not None:
            return True
        labels = host.split(".")
        for i in range(1, len(labels)):
            state = self._live(".".join(labels[i:]), ephemeral)
            if state is not None and state.include_subdomains:
                return True
        return False

    # --------------------------------------------------------
    # Host environment
    # --------------------------------------------------------

    def _live(self, host: str, ephemeral: bool) -> Optional[_StsState]:
        cache = self._cache(ephemeral)
        state = cache.get(host)
        if state is not None and state.expires <= self._clock():
            del cache[host]
            return None
        return state

    def process_header(self, locator: Locator, header_value: str,
                       ephemeral: bool = False) -> None:
        """Record a Strict-Transport-Security header sent by a site."""
        self.enable(locator, header_value, ephemeral)

    def clear_ephemeral(self) -> None:
        """Drop the private-browsing cache, as the browser may at any time."""
        self._cache(True).clear()

    def shutdown(self) -> None:
        self._available = False

    def hosts(self, ephemeral: bool) -> list[str]:
        """Hosts with live state in one cache."""
        return sorted(h for h in list(self._cache(ephemeral))
                      if self._live(h, ephemeral) is not None)
