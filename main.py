"""
STS Enforcer API Service

FastAPI wrapper around the enforcement engine. Stands in for the browser
shell: it boots the engine, replays stored declarations, and exposes the
operations the identity popup drives.
Uses FalkorDB or a JSON file for durable storage (falls back to in-memory).
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from sts_enforcer.config import Settings
from sts_enforcer.core.enforcer import Enforcer
from sts_enforcer.core.errors import BackendUnavailable, ConfigurationError
from sts_enforcer.core.locator import to_locator
from sts_enforcer.core.status import EnforcementStatus
from sts_enforcer.domains.suffix import TldextractSuffixService
from sts_enforcer.domains.walker import DomainHierarchyWalker
from sts_enforcer.interface.popup import IdentityPopup
from sts_enforcer.security.service import InMemorySiteSecurityService
from sts_enforcer.store.backend import InMemoryPolicyStore, PolicyStore
from sts_enforcer.store.falkordb_store import FalkorPolicyStore
from sts_enforcer.store.json_store import JsonFilePolicyStore


# ============================================================
# Global State
# ============================================================

enforcer: Enforcer = None
popup: IdentityPopup = None
settings: Settings = None


def build_store(s: Settings) -> tuple[PolicyStore, str]:
    """Durable store from settings; in-memory if FalkorDB is unreachable."""
    if s.store_kind == "falkordb":
        try:
            store = FalkorPolicyStore(
                host=s.falkordb_host, port=s.falkordb_port,
                password=s.falkordb_password, graph_name=s.falkordb_graph)
            len(store)
            return store, store.description
        except BackendUnavailable as e:
            print(f"FalkorDB connection failed: {e}, falling back to in-memory")
            return InMemoryPolicyStore(), "In-Memory (FalkorDB failed)"
    if s.store_kind == "json":
        return JsonFilePolicyStore(s.store_path), f"JSON file ({s.store_path})"
    return InMemoryPolicyStore(), "In-Memory"


def build_enforcer(s: Settings, store: PolicyStore) -> Enforcer:
    walker = DomainHierarchyWalker(TldextractSuffixService(extra_suffixes=s.extra_suffixes))
    return Enforcer(store, InMemorySiteSecurityService(), walker, max_age=s.max_age)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the engine and replay the store on startup."""
    global enforcer, popup, settings

    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level)
    store, store_name = build_store(settings)
    enforcer = build_enforcer(settings, store)
    popup = IdentityPopup(enforcer)
    replayed = enforcer.init()

    print("STS Enforcer booted")
    print(f"  Store: {store_name}")
    print(f"  Replayed: {replayed} host(s)")
    yield
    enforcer.backend.shutdown()
    print("STS Enforcer shutting down")


app = FastAPI(
    title="STS Enforcer",
    description="User-managed HTTPS-only enforcement per host",
    version="0.3.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(BackendUnavailable)
async def backend_unavailable_handler(request: Request, exc: BackendUnavailable):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


# ============================================================
# Request/Response Models
# ============================================================

class HostPolicy(BaseModel):
    enforce: bool
    include_subdomains: bool = False

class ContextOpened(BaseModel):
    private: bool = False

class HostStatus(BaseModel):
    host: str
    status: str
    enforcing_ancestor: Optional[str] = None

class PolicyChange(BaseModel):
    host: str
    applied: bool
    status: str


def _status(host: str) -> HostStatus:
    status = enforcer.status_of(host)
    ancestor = None
    if status is EnforcementStatus.USER_ENFORCED_PARENT:
        ancestor = enforcer.enforcing_ancestor_of(host)
    return HostStatus(host=host, status=status.value, enforcing_ancestor=ancestor)


# ============================================================
# Health
# ============================================================

@app.get("/health")
async def health():
    return {"status": "ok", "hosts": len(enforcer.store)}


# ============================================================
# Host Endpoints
# ============================================================

@app.get("/hosts")
async def list_hosts():
    """All user declarations."""
    entries = [{"host": h, "include_subdomains": e.include_subdomains}
               for h, e in sorted(enforcer.store.items())]
    return {"hosts": entries, "total": len(entries)}

@app.get("/hosts/{host}/status", response_model=HostStatus)
async def host_status(host: str):
    return _status(to_locator(host).host)

@app.put("/hosts/{host}", response_model=PolicyChange)
async def set_host_policy(host: str, req: HostPolicy):
    host = to_locator(host).host
    applied = enforcer.set_sts_for_host(host, req.enforce, req.include_subdomains)
    return PolicyChange(host=host, applied=applied,
                        status=enforcer.status_of(host).value)

@app.post("/hosts/{host}/toggle", response_model=PolicyChange)
async def toggle_host(host: str):
    host = to_locator(host).host
    applied = enforcer.toggle_sts_enforcing_for_host(host)
    return PolicyChange(host=host, applied=applied,
                        status=enforcer.status_of(host).value)


# ============================================================
# Replay Endpoints
# ============================================================

@app.post("/ensure")
async def ensure():
    return {"replayed": enforcer.ensure_sts()}

@app.post("/contexts")
async def context_opened(req: ContextOpened):
    """A browsing context opened; private ones need the store replayed."""
    return {"private": req.private, "replayed": enforcer.on_context_opened(req.private)}


# ============================================================
# Popup Endpoints
# ============================================================

@app.get("/popup")
async def popup_state(url: str):
    return popup.refresh(url).to_dict()

@app.post("/popup/toggle")
async def popup_toggle(url: str):
    if not url:
        raise HTTPException(400, "url required")
    return popup.toggle(url).to_dict()


# ============================================================
# Run
# ============================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=Settings.from_env().port, reload=False)
