"""
STS Enforcer Identity Popup

State for the "Enforce HTTPS" checkbox in a browser's site-identity popup.
Only decides what the checkbox should show; drawing it and translating the
label ids belong to the browser shell.

  - hidden on non-https pages
  - checked whenever HTTPS-only is in effect
  - disabled when the user cannot change it here (site or parent rules)
"""

import logging
from dataclasses import dataclass, asdict
from urllib.parse import urlsplit

from sts_enforcer.core.enforcer import Enforcer
from sts_enforcer.core.status import EnforcementStatus

log = logging.getLogger(__name__)

LABEL_ERROR = "ui.status.error"


@dataclass(frozen=True)
class PopupState:
    hidden: bool
    label_key: str = LABEL_ERROR
    checked: bool = False
    disabled: bool = True
    status: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


# status -> (label_key, checked, disabled)
CHECKBOX_STATES: dict[EnforcementStatus, tuple[str, bool, bool]] = {
    EnforcementStatus.USER_ENFORCED: ("ui.status.user_enforced", True, False),
    EnforcementStatus.USER_ENFORCED_WITH_SUBDOMAINS: (
        "ui.status.user_enforced_with_subdomains", True, False),
    EnforcementStatus.USER_ENFORCED_PARENT: ("ui.status.user_enforced_parent", True, True),
    EnforcementStatus.SITE_ENFORCED: ("ui.status.site_enforced", True, True),
    EnforcementStatus.NOT_ENFORCED: ("ui.status.not_enforced", False, False),
}

_missing = set(EnforcementStatus) - set(CHECKBOX_STATES)
if _missing:
    raise RuntimeError(f"No checkbox state for {sorted(s.value for s in _missing)}")


class IdentityPopup:
    """Popup presenter bound to one Enforcer."""

    def __init__(self, enforcer: Enforcer):
        self.enforcer = enforcer

    def refresh(self, url: str) -> PopupState:
        parts = urlsplit(url or "")
        if parts.scheme.lower() != "https" or not parts.hostname:
            return PopupState(hidden=True)

        status = self.enforcer.status_of(parts.hostname)
        label_key, checked, disabled = CHECKBOX_STATES[status]
        return PopupState(hidden=False, label_key=label_key, checked=checked,
                          disabled=disabled, status=status.value)

    def toggle(self, url: str) -> PopupState:
        """Checkbox clicked: flip the exact host, then redraw."""
        parts = urlsplit(url or "")
        if parts.hostname:
            self.enforcer.toggle_sts_enforcing_for_host(parts.hostname)
        else:
            log.warning("Toggle ignored, no host in %r", url)
        return self.refresh(url)
