"""
STS Enforcer Policy Store

The persisted mapping host -> PolicyEntry. It is the only record of user
intent: the security service stores user and site entries identically, so
provenance survives only here.

Production uses a durable store (JSON file or FalkorDB). This is a
dict-based in-memory store with the same semantics for development and
testing.
"""

from abc import ABC, abstractmethod
from typing import Iterator, Optional

from sts_enforcer.core.locator import normalize_host
from sts_enforcer.core.status import PolicyEntry


class PolicyStore(ABC):
    """host -> PolicyEntry, keyed by normalised exact host."""

    @abstractmethod
    def get(self, host: str) -> Optional[PolicyEntry]:
        ...

    @abstractmethod
    def put(self, host: str, entry: PolicyEntry) -> None:
        ...

    @abstractmethod
    def remove(self, host: str) -> bool:
        """Drop the entry. Returns True if one existed."""

    @abstractmethod
    def items(self) -> list[tuple[str, PolicyEntry]]:
        """Snapshot of every entry, safe to iterate while mutating."""

    def hosts(self) -> list[str]:
        return [host for host, _ in self.items()]

    def clear(self) -> None:
        for host in self.hosts():
            self.remove(host)

    def __contains__(self, host: str) -> bool:
        return self.get(host) is not None

    def __len__(self) -> int:
        return len(self.items())

    def __iter__(self) -> Iterator[str]:
        return iter(self.hosts())


class InMemoryPolicyStore(PolicyStore):
    """Non-durable store. Lost on restart."""

    def __init__(self, entries: Optional[dict[str, PolicyEntry]] = None):
        self._entries: dict[str, PolicyEntry] = {}
        for host, entry in (entries or {}).items():
            self.put(host, entry)

    def get(self, host: str) -> Optional[PolicyEntry]:
        return self._entries.get(normalize_host(host))

    def put(self, host: str, entry: PolicyEntry) -> None:
        self._entries[normalize_host(host)] = entry

    def remove(self, host: str) -> bool:
        return self._entries.pop(normalize_host(host), None) is not None

    def items(self) -> list[tuple[str, PolicyEntry]]:
        return list(self._entries.items())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
