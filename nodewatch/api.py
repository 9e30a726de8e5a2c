from __future__ import annotations

from fastapi import FastAPI, HTTPException, Query

from .api_models import ChainOut, EventOut, SweepOut
from .bootstrap import build_watchdogs
from .runtime import RuntimeState
from .settings import load_chains, settings
from .watchdog import ChainWatchdog

app = FastAPI(title="Node Watchdog", description="Read-only status of the registry node watchdogs")

RUNTIME = RuntimeState(max_events=settings.event_buffer)
WATCHDOGS: dict[str, ChainWatchdog] = {}


@app.on_event("startup")
def startup() -> None:
    if settings.disable_watchdogs:
        RUNTIME.log_event("WARN", "Watchdogs disabled (NWD_DISABLE_WATCHDOGS)")
        return
    # ConfigError propagates and aborts startup.
    for w in build_watchdogs(load_chains(), RUNTIME):
        WATCHDOGS[w.name] = w
        w.start()


@app.on_event("shutdown")
def shutdown() -> None:
    for w in WATCHDOGS.values():
        w.stop()


def _chain_out(w: ChainWatchdog) -> ChainOut:
    report = RUNTIME.get_sweep(w.name)
    c = w.chain
    return ChainOut(
        name=c.name,
        chain_id=c.chain_id,
        contract=c.contract,
        watchdog_account=c.watchdog_account,
        watchdog_permission=c.watchdog_permission,
        rpc_url=c.rpc_url,
        running=not w.stopped,
        last_sweep=SweepOut(**report.to_dict()) if report else None,
    )


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "healthy"}


@app.get("/chains", response_model=list[ChainOut])
def list_chains() -> list[ChainOut]:
    return [_chain_out(w) for w in WATCHDOGS.values()]


@app.get("/chains/{name}", response_model=ChainOut)
def get_chain(name: str) -> ChainOut:
    w = WATCHDOGS.get(name)
    if not w:
        raise HTTPException(status_code=404, detail=f"Unknown chain '{name}'")
    return _chain_out(w)


@app.get("/events", response_model=list[EventOut])
def events(limit: int = Query(100, ge=1, le=1000)) -> list[EventOut]:
    return [EventOut(**e) for e in RUNTIME.latest_events(limit)]
