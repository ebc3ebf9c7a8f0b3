"""
STS Enforcer Status Resolver

Read-only. Decides why (or whether) HTTPS-only applies to a host:

  1. Exact user declaration      -> USER_ENFORCED[_WITH_SUBDOMAINS]
  2. Nearest ancestor declaring includeSubdomains -> USER_ENFORCED_PARENT
  3. Security service enforces the host           -> SITE_ENFORCED
  4. Otherwise                                    -> NOT_ENFORCED

Step 3 only reaches hosts with no user declaration anywhere above them, so
whatever the service reports there came from the site.
"""

from typing import Optional

from sts_enforcer.core.locator import to_locator
from sts_enforcer.core.status import EnforcementStatus
from sts_enforcer.domains.walker import DomainHierarchyWalker
from sts_enforcer.security.service import SiteSecurityService
from sts_enforcer.store.backend import PolicyStore


class StatusResolver:
    """Computes EnforcementStatus from store, walker and security service."""

    def __init__(self, store: PolicyStore, walker: DomainHierarchyWalker,
                 backend: SiteSecurityService):
        self.store = store
        self.walker = walker
        self.backend = backend

    def status_of(self, host: str) -> EnforcementStatus:
        host = to_locator(host).host

        entry = self.store.get(host)
        if entry is not None:
            if entry.include_subdomains:
                return EnforcementStatus.USER_ENFORCED_WITH_SUBDOMAINS
            return EnforcementStatus.USER_ENFORCED

        if self.enforcing_ancestor_of(host) is not None:
            return EnforcementStatus.USER_ENFORCED_PARENT

        # Persistent context only; private contexts mirror it.
        if self.backend.is_enforced(to_locator(host), ephemeral=False):
            return EnforcementStatus.SITE_ENFORCED

        return EnforcementStatus.NOT_ENFORCED

    def enforcing_ancestor_of(self, host: str) -> Optional[str]:
        """Nearest ancestor whose user entry includes subdomains.

        Ancestors without includeSubdomains are skipped, not treated as
        a stop. The first match wins.
        """
        for ancestor in self.walker.ancestors_of(host):
            entry = self.store.get(ancestor)
            if entry is not None and entry.include_subdomains:
                return ancestor
        return None
