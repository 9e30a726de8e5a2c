from __future__ import annotations

from pydantic import BaseModel, Field


class NodeOutcomeOut(BaseModel):
    owner: str
    was_active: bool
    healthy: bool
    probe: str = Field(..., description="new_format|legacy_format|parse_error|unreachable")
    action: str = Field(..., description="approve|disapprove|noop")
    transaction_id: str | None = None
    detail: str = ""


class SweepOut(BaseModel):
    started_at: str
    finished_at: str | None = None
    ok: bool
    node_count: int
    next_delay_s: float | None = None
    error: str | None = None
    outcomes: list[NodeOutcomeOut] = Field(default_factory=list)


class ChainOut(BaseModel):
    name: str
    chain_id: str
    contract: str
    watchdog_account: str
    watchdog_permission: str
    rpc_url: str
    running: bool
    last_sweep: SweepOut | None = None


class EventOut(BaseModel):
    id: int
    ts: str
    level: str
    chain: str | None = None
    owner: str | None = None
    message: str
