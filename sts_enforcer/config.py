"""
STS Enforcer Configuration

Everything comes from environment variables with defaults:

  STS_STORE           memory | json | falkordb (default: falkordb if
                      FALKORDB_HOST is set, json if STS_STORE_PATH is set,
                      otherwise memory)
  STS_STORE_PATH      JSON policy file
  FALKORDB_HOST/PORT/PASSWORD/GRAPH
  STS_MAX_AGE         max-age sent with every directive (31556900)
  STS_EXTRA_SUFFIXES  comma-separated suffixes treated as public
  PORT                HTTP port of the service (8080)
  LOG_LEVEL           stdlib logging level name (INFO)
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from sts_enforcer.core.errors import ConfigurationError
from sts_enforcer.core.mutator import DEFAULT_MAX_AGE

STORE_KINDS = ("memory", "json", "falkordb")


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got {value}")
    return value


def _level(raw: str) -> str:
    level = (raw or "INFO").strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError(f"LOG_LEVEL must be a logging level name, got {raw!r}")
    return level


@dataclass
class Settings:
    store_kind: str = "memory"
    store_path: Optional[str] = None
    falkordb_host: Optional[str] = None
    falkordb_port: int = 6379
    falkordb_password: str = ""
    falkordb_graph: str = "sts_enforcer"
    max_age: int = DEFAULT_MAX_AGE
    extra_suffixes: list[str] = field(default_factory=list)
    port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        falkor_host = env.get("FALKORDB_HOST") or None
        store_path = env.get("STS_STORE_PATH") or None

        kind = (env.get("STS_STORE") or "").strip().lower()
        if not kind:
            kind = "falkordb" if falkor_host else "json" if store_path else "memory"
        if kind not in STORE_KINDS:
            raise ConfigurationError(f"STS_STORE must be one of {STORE_KINDS}, got {kind!r}")
        if kind == "json" and not store_path:
            raise ConfigurationError("STS_STORE=json needs STS_STORE_PATH")

        return cls(
            store_kind=kind,
            store_path=store_path,
            falkordb_host=falkor_host,
            falkordb_port=_int(env, "FALKORDB_PORT", 6379),
            falkordb_password=env.get("FALKORDB_PASSWORD", ""),
            falkordb_graph=env.get("FALKORDB_GRAPH", "sts_enforcer"),
            max_age=_int(env, "STS_MAX_AGE", DEFAULT_MAX_AGE),
            extra_suffixes=[s.strip() for s in env.get("STS_EXTRA_SUFFIXES", "").split(",")
                            if s.strip()],
            port=_int(env, "PORT", 8080),
            log_level=_level(env.get("LOG_LEVEL", "INFO")),
        )
