"""
FalkorDB Policy Store

Drop-in replacement for the in-memory PolicyStore.
Same interface, backed by FalkorDB Cypher queries.

Node model:
  - Label = EnforcedHost
  - Property `_id` = normalised host
  - Property `include_subdomains` = the PolicyEntry flag

Connection pooling is handled by the FalkorDB client. An unreachable
server surfaces as BackendUnavailable.
"""

import logging
import os
from typing import Optional

from falkordb import FalkorDB as FalkorDBClient
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from sts_enforcer.core.errors import BackendUnavailable
from sts_enforcer.core.locator import normalize_host
from sts_enforcer.core.status import PolicyEntry
from sts_enforcer.store.backend import PolicyStore

log = logging.getLogger(__name__)

LABEL = "EnforcedHost"


class FalkorPolicyStore(PolicyStore):
    """FalkorDB-backed policy store. Same interface as InMemoryPolicyStore."""

    def __init__(self, host: str = None, port: int = None,
                 password: str = None, graph_name: str = "sts_enforcer",
                 graph=None):
        self._host = host or os.getenv("FALKORDB_HOST", "localhost")
        self._port = int(port or os.getenv("FALKORDB_PORT", "6379"))
        self._password = password or os.getenv("FALKORDB_PASSWORD", "")
        self._graph_name = graph_name

        if graph is None:
            kwargs = {"host": self._host, "port": self._port}
            if self._password:
                kwargs["password"] = self._password
            try:
                self._db = FalkorDBClient(**kwargs)
                graph = self._db.select_graph(self._graph_name)
            except (RedisConnectionError, RedisTimeoutError, ConnectionError) as e:
                raise BackendUnavailable(f"{self.description} unreachable: {e}") from e
        self._graph = graph
        self._indexed = False

    @property
    def description(self) -> str:
        return f"FalkorDB ({self._host}:{self._port}/{self._graph_name})"

    def _ensure_index(self):
        """Create the _id index on first use."""
        if self._indexed:
            return
        self._indexed = True
        try:
            self._graph.query(f"CREATE INDEX FOR (h:{LABEL}) ON (h._id)")
        except (RedisConnectionError, RedisTimeoutError, ConnectionError) as e:
            self._indexed = False
            raise BackendUnavailable(f"{self.description} unreachable: {e}") from e
        except Exception as e:
            # Index already exists.
            log.debug("Index on %s._id not created: %s", LABEL, e)

    def _q(self, query: str, params: dict = None):
        """Execute a Cypher query."""
        self._ensure_index()
        try:
            return self._graph.query(query, params or {})
        except (RedisConnectionError, RedisTimeoutError, ConnectionError) as e:
            raise BackendUnavailable(f"{self.description} unreachable: {e}") from e
        except Exception as e:
            log.error("FalkorDB query error: %s\n  Query: %s", e, query[:200])
            raise

    # --------------------------------------------------------
    # PolicyStore
    # --------------------------------------------------------

    def get(self, host: str) -> Optional[PolicyEntry]:
        result = self._q(
            f"MATCH (h:{LABEL} {{_id: $host}}) RETURN h.include_subdomains LIMIT 1",
            {"host": normalize_host(host)})
        if result.result_set:
            return PolicyEntry(include_subdomains=bool(result.result_set[0][0]))
        return None

    def put(self, host: str, entry: PolicyEntry) -> None:
        self._q(
            f"MERGE (h:{LABEL} {{_id: $host}}) SET h.include_subdomains = $sub",
            {"host": normalize_host(host), "sub": entry.include_subdomains})

    def remove(self, host: str) -> bool:
        if self.get(host) is None:
            return False
        self._q(f"MATCH (h:{LABEL} {{_id: $host}}) DETACH DELETE h",
                {"host": normalize_host(host)})
        return True

    def items(self) -> list[tuple[str, PolicyEntry]]:
        result = self._q(
            f"MATCH (h:{LABEL}) RETURN h._id, h.include_subdomains ORDER BY h._id")
        return [(_decode(row[0]), PolicyEntry(include_subdomains=bool(row[1])))
                for row in result.result_set]

    def clear(self) -> None:
        self._q(f"MATCH (h:{LABEL}) DETACH DELETE h")


def _decode(value) -> str:
    if isinstance(value, bytes):
        return value.decode()
    return str(value)
