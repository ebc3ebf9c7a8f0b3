"""
STS Enforcer Policy Mutator

The only writer of enforcement state. Every operation updates the security
service (persistent and ephemeral caches together) and, where it owns the
decision, the store, before returning, so an immediate status_of sees it.

The service has no "replace" directive, so changing the subdomain flag is
always clear-then-set. A failure during the set half leaves the host
disabled; that failure is raised, never downgraded to NOT_ENFORCED.
"""

import logging

from sts_enforcer.core.locator import to_locator
from sts_enforcer.core.resolver import StatusResolver
from sts_enforcer.core.status import (
    EnforcementStatus, PolicyEntry, USER_DECLARED, USER_MUTABLE,
)
from sts_enforcer.security.service import SiteSecurityService
from sts_enforcer.store.backend import PolicyStore

log = logging.getLogger(__name__)

DEFAULT_MAX_AGE = 31556900  # one year, in seconds


def build_directive(max_age: int = DEFAULT_MAX_AGE,
                    include_subdomains: bool = False) -> str:
    value = f"max-age={max_age};"
    if include_subdomains:
        value += "includeSubDomains;"
    return value


class PolicyMutator:
    """enable / disable / set / update / toggle / ensure."""

    def __init__(self, store: PolicyStore, backend: SiteSecurityService,
                 resolver: StatusResolver, max_age: int = DEFAULT_MAX_AGE):
        self.store = store
        self.backend = backend
        self.resolver = resolver
        self.max_age = max_age

    # --------------------------------------------------------
    # Service directives (store untouched)
    # --------------------------------------------------------

    def enable_sts_for_host(self, host: str, include_subdomains: bool = False) -> None:
        locator = to_locator(host)
        directive = build_directive(self.max_age, include_subdomains)
        self.backend.enable(locator, directive, ephemeral=False)
        self.backend.enable(locator, directive, ephemeral=True)
        log.debug("STS enabled for %s (%s)", locator.host, directive)

    def disable_sts_for_host(self, host: str) -> None:
        locator = to_locator(host)
        self.backend.disable(locator, ephemeral=False)
        self.backend.disable(locator, ephemeral=True)
        log.debug("STS disabled for %s", locator.host)

    def update_sts_for_host(self, host: str, enforce: bool,
                            include_subdomains: bool) -> None:
        """Clear any existing state, then enable iff enforce."""
        self.disable_sts_for_host(host)
        if not enforce:
            return
        try:
            self.enable_sts_for_host(host, include_subdomains)
        except Exception:
            log.error("STS for %s was cleared but could not be re-enabled", host)
            raise

    # --------------------------------------------------------
    # User-facing operations (store + service)
    # --------------------------------------------------------

    def set_sts_for_host(self, host: str, enforce: bool,
                         include_subdomains: bool = False) -> bool:
        """Apply a user declaration for the exact host.

        Declined (returns False, nothing changes) when the host is governed
        by the site or by a parent declaration.
        """
        host = to_locator(host).host
        status = self.resolver.status_of(host)
        if status not in USER_MUTABLE:
            log.warning("Declined STS change for %s: host is %s", host, status.value)
            return False

        # Service first, then store. A failed store write propagates with the
        # service already updated; the next ensure_sts only replays the store.
        self.update_sts_for_host(host, enforce, include_subdomains)
        if enforce:
            self.store.put(host, PolicyEntry(include_subdomains=include_subdomains))
        else:
            self.store.remove(host)
        return True

    def toggle_sts_enforcing_for_host(self, host: str) -> bool:
        """Binary exact-host toggle without a subdomain choice."""
        host = to_locator(host).host
        status = self.resolver.status_of(host)
        if status is EnforcementStatus.NOT_ENFORCED:
            return self.set_sts_for_host(host, True, False)
        if status in USER_DECLARED:
            return self.set_sts_for_host(host, False, False)
        if status in (EnforcementStatus.SITE_ENFORCED,
                      EnforcementStatus.USER_ENFORCED_PARENT):
            log.warning("Declined STS toggle for %s: host is %s", host, status.value)
            return False
        raise AssertionError(f"Unhandled status {status!r}")

    def ensure_sts(self) -> int:
        """Replay every stored declaration into the service.

        Safe to repeat; the store is only read. Returns the entry count.
        """
        entries = self.store.items()
        for host, entry in entries:
            self.enable_sts_for_host(host, entry.include_subdomains)
        log.debug("Replayed %d STS declarations", len(entries))
        return len(entries)
