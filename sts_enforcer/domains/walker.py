"""
STS Enforcer Domain Hierarchy Walker

Produces the registrable ancestors of a host, nearest first, never the host
itself and never a bare public suffix:

    foo.bar.example.co.uk -> bar.example.co.uk, example.co.uk

Ancestors are derived from eTLD boundaries, not by chopping labels, so
"co.uk" can never become a policy target.
"""

from typing import Iterator

from sts_enforcer.core.locator import normalize_host
from sts_enforcer.domains.suffix import DomainSuffixService


class DomainHierarchyWalker:
    """Lazy ancestor walk over a DomainSuffixService."""

    def __init__(self, suffixes: DomainSuffixService):
        self.suffixes = suffixes

    def ancestors_of(self, host: str) -> Iterator[str]:
        host = normalize_host(host)
        base = self.suffixes.registrable_domain_at_level(host, 0)
        if base is None:
            return
        # Levels above the host itself, walked from the narrowest down to 0.
        extra = host.count(".") - base.count(".")
        for level in range(extra - 1, -1, -1):
            ancestor = self.suffixes.registrable_domain_at_level(host, level)
            if ancestor is None:
                return
            yield ancestor
