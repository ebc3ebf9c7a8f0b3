"""
STS Enforcer

The entry point that ties the engine together. Owns the store and the
security service handles it was given (no globals, no lazy lookups) and
exposes what the UI layer needs:

  - status_of / enforcing_ancestor_of
  - set_sts_for_host / toggle_sts_enforcing_for_host / ensure_sts
  - init() at startup, on_context_opened() when a window opens

The security service's caches are not guaranteed to survive a restart and
the private one can be emptied at any time, so both hooks replay the store.
"""

import logging
from typing import Optional

from sts_enforcer.core.mutator import DEFAULT_MAX_AGE, PolicyMutator
from sts_enforcer.core.resolver import StatusResolver
from sts_enforcer.core.status import EnforcementStatus
from sts_enforcer.domains.suffix import TldextractSuffixService
from sts_enforcer.domains.walker import DomainHierarchyWalker
from sts_enforcer.security.service import SiteSecurityService
from sts_enforcer.store.backend import PolicyStore

log = logging.getLogger(__name__)


class Enforcer:
    """One per process. Driven from a single event loop; takes no locks."""

    def __init__(self, store: PolicyStore, backend: SiteSecurityService,
                 walker: Optional[DomainHierarchyWalker] = None,
                 max_age: int = DEFAULT_MAX_AGE):
        self.store = store
        self.backend = backend
        self.walker = walker or DomainHierarchyWalker(TldextractSuffixService())
        self.resolver = StatusResolver(store, self.walker, backend)
        self.mutator = PolicyMutator(store, backend, self.resolver, max_age=max_age)

    def init(self) -> int:
        """Seed the security service from the store."""
        return self.ensure_sts()

    def on_context_opened(self, private: bool) -> int:
        """A browsing context opened. Private ones start with an empty cache."""
        if not private:
            return 0
        return self.ensure_sts()

    # --------------------------------------------------------
    # Queries
    # --------------------------------------------------------

    def status_of(self, host: str) -> EnforcementStatus:
        return self.resolver.status_of(host)

    def enforcing_ancestor_of(self, host: str) -> Optional[str]:
        return self.resolver.enforcing_ancestor_of(host)

    # --------------------------------------------------------
    # Operations
    # --------------------------------------------------------

    def set_sts_for_host(self, host: str, enforce: bool,
                         include_subdomains: bool = False) -> bool:
        return self.mutator.set_sts_for_host(host, enforce, include_subdomains)

    def toggle_sts_enforcing_for_host(self, host: str) -> bool:
        return self.mutator.toggle_sts_enforcing_for_host(host)

    def ensure_sts(self) -> int:
        return self.mutator.ensure_sts()

    def enable_sts_for_host(self, host: str, include_subdomains: bool = False) -> None:
        self.mutator.enable_sts_for_host(host, include_subdomains)

    def disable_sts_for_host(self, host: str) -> None:
        self.mutator.disable_sts_for_host(host)

    def update_sts_for_host(self, host: str, enforce: bool,
                            include_subdomains: bool) -> None:
        self.mutator.update_sts_for_host(host, enforce, include_subdomains)
