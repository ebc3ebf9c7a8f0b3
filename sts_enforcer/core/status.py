"""
STS Enforcer Status Model

Five mutually exclusive statuses, evaluated in strict precedence order.
The store only ever holds user intent; site-declared enforcement lives in
the security service and is never written to the store.
"""

from dataclasses import dataclass
from enum import Enum


class EnforcementStatus(Enum):
    """Why (or whether) HTTPS-only is in effect for a host."""
    SITE_ENFORCED = "SITE_ENFORCED"                                   # site sent Strict-Transport-Security
    USER_ENFORCED = "USER_ENFORCED"                                   # exact host, no subdomains
    USER_ENFORCED_WITH_SUBDOMAINS = "USER_ENFORCED_WITH_SUBDOMAINS"   # exact host + subdomains
    USER_ENFORCED_PARENT = "USER_ENFORCED_PARENT"                     # inherited from an ancestor
    NOT_ENFORCED = "NOT_ENFORCED"


USER_DECLARED = frozenset({
    EnforcementStatus.USER_ENFORCED,
    EnforcementStatus.USER_ENFORCED_WITH_SUBDOMAINS,
})

# Statuses under which the user may create, change or drop an exact-host entry.
USER_MUTABLE = USER_DECLARED | {EnforcementStatus.NOT_ENFORCED}


@dataclass(frozen=True)
class PolicyEntry:
    """A user declaration for one exact host."""
    include_subdomains: bool = False

    def to_dict(self) -> dict:
        return {"includeSubdomains": self.include_subdomains}

    @classmethod
    def from_dict(cls, data: dict) -> "PolicyEntry":
        return cls(include_subdomains=bool(data.get("includeSubdomains", False)))
