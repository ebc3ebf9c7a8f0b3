"""
STS Enforcer Domain-Suffix Service

Answers one question: what is the registrable domain of a host at a given
level? Level 0 is the eTLD+1 ("example.co.uk"), each further level adds one
label ("www.example.co.uk"). When the host does not have enough labels, is
itself a public suffix, or is an IP address, the answer is None. Running
out of levels is ordinary control flow, not an exception.
"""

import ipaddress
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import tldextract

from sts_enforcer.core.locator import normalize_host


class DomainSuffixService(ABC):
    """Effective top-level-domain classification."""

    @abstractmethod
    def public_suffix(self, host: str) -> str:
        """The public suffix of host ("com", "co.uk", ...)."""

    def registrable_domain_at_level(self, host: str, level: int) -> Optional[str]:
        host = normalize_host(host)
        if not host or level < 0 or _is_ip_address(host):
            return None
        labels = host.split(".")
        suffix_labels = self.public_suffix(host).count(".") + 1
        wanted = suffix_labels + 1 + level
        if len(labels) < wanted:
            return None
        return ".".join(labels[-wanted:])

    def is_public_suffix(self, host: str) -> bool:
        host = normalize_host(host)
        return bool(host) and self.public_suffix(host) == host


class TldextractSuffixService(DomainSuffixService):
    """Public Suffix List lookups through tldextract.

    Uses the PSL snapshot bundled with tldextract, so no network fetch and
    no disk cache. The private section is included by default, so
    "github.io" and "blogspot.com" are suffixes like "co.uk". Unknown TLDs
    fall back to the PSL default rule "*": the last label is the suffix,
    which makes "parent.test" registrable.
    """

    def __init__(self, extra_suffixes: Sequence[str] = (),
                 include_private_domains: bool = True):
        self._extract = tldextract.TLDExtract(
            cache_dir=None,
            suffix_list_urls=(),
            fallback_to_snapshot=True,
            include_psl_private_domains=include_private_domains,
            extra_suffixes=tuple(s.strip().lower().strip(".")
                                 for s in extra_suffixes if s.strip()),
        )

    def public_suffix(self, host: str) -> str:
        host = normalize_host(host)
        suffix = self._extract(host).suffix
        if not suffix:
            suffix = host.rsplit(".", 1)[-1]
        return suffix


def _is_ip_address(host: str) -> bool:
    try:
        ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return False
    return True
