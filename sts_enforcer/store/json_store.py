"""
STS Enforcer JSON File Store

Durable store kept as a single JSON document:

    {"enforceHosts": {"example.com": {"includeSubdomains": true}}}

Loaded lazily on first access (a missing file is an empty store) and
rewritten through a temp file + rename after every mutation, so a crash
mid-write leaves the previous document intact. A failed write leaves the
cached entries unchanged too.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from sts_enforcer.core.errors import ConfigurationError
from sts_enforcer.core.locator import normalize_host
from sts_enforcer.core.status import PolicyEntry
from sts_enforcer.store.backend import PolicyStore

log = logging.getLogger(__name__)

DOCUMENT_KEY = "enforceHosts"


class JsonFilePolicyStore(PolicyStore):
    """File-backed store. Same interface as InMemoryPolicyStore."""

    def __init__(self, path):
        self.path = Path(path)
        self._entries: Optional[dict[str, PolicyEntry]] = None

    def _load(self) -> dict[str, PolicyEntry]:
        if self._entries is not None:
            return self._entries
        if not self.path.exists():
            self._entries = {}
            return self._entries
        try:
            document = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Corrupt policy store {self.path}: {e}") from e
        hosts = document.get(DOCUMENT_KEY, {}) if isinstance(document, dict) else None
        if not isinstance(hosts, dict):
            raise ConfigurationError(f"Policy store {self.path} has no {DOCUMENT_KEY} map")
        self._entries = {normalize_host(h): PolicyEntry.from_dict(v or {})
                         for h, v in hosts.items()}
        log.debug("Loaded %d policy entries from %s", len(self._entries), self.path)
        return self._entries

    def _commit(self, entries: dict[str, PolicyEntry]) -> None:
        """Write entries to disk, then adopt them as the cached document."""
        document = {DOCUMENT_KEY: {h: e.to_dict() for h, e in sorted(entries.items())}}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".sts-", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except BaseException:
            os.unlink(tmp)
            raise
        self._entries = entries

    def get(self, host: str) -> Optional[PolicyEntry]:
        return self._load().get(normalize_host(host))

    def put(self, host: str, entry: PolicyEntry) -> None:
        entries = dict(self._load())
        entries[normalize_host(host)] = entry
        self._commit(entries)

    def remove(self, host: str) -> bool:
        entries = dict(self._load())
        if entries.pop(normalize_host(host), None) is None:
            return False
        self._commit(entries)
        return True

    def items(self) -> list[tuple[str, PolicyEntry]]:
        return list(self._load().items())

    def reload(self) -> None:
        """Forget the cached document; the next access rereads the file."""
        self._entries = None
