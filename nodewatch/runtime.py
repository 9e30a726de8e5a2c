from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any

from .health import ProbeKind
from .reconciler import ReconcileAction

log = logging.getLogger("nodewatch.events")


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class NodeOutcome:
    owner: str
    was_active: bool
    healthy: bool
    probe: ProbeKind
    action: ReconcileAction
    transaction_id: str | None = None
    detail: str = ""


@dataclass
class SweepReport:
    chain: str
    started_at: str = field(default_factory=utc_now)
    finished_at: str | None = None
    node_count: int = 0
    outcomes: list[NodeOutcome] = field(default_factory=list)
    next_delay_s: float | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def actions(self) -> list[NodeOutcome]:
        return [o for o in self.outcomes if o.action is not ReconcileAction.NOOP]

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["ok"] = self.ok
        for o in d["outcomes"]:
            o["probe"] = o["probe"].value
            o["action"] = o["action"].value
        return d


_LEVELS = {"DEBUG": logging.DEBUG, "INFO": logging.INFO, "WARN": logging.WARNING, "ERROR": logging.ERROR}


class RuntimeState:
    """In-memory view of what the watchdogs are doing.

    Holds a bounded event log and the last sweep report per chain. Nothing is
    persisted; a restart starts from an empty view.
    """

    def __init__(self, max_events: int = 500) -> None:
        self.lock = Lock()
        self.events: deque[dict[str, Any]] = deque(maxlen=max(1, max_events))
        self.last_sweep: dict[str, SweepReport] = {}  # chain -> report
        self._next_id = 1

    def log_event(self, level: str, message: str, chain: str | None = None, owner: str | None = None) -> None:
        level = level.upper()
        log.log(_LEVELS.get(level, logging.INFO), "[%s] %s", chain or "-", message)
        with self.lock:
            self.events.append(
                {"id": self._next_id, "ts": utc_now(), "level": level, "chain": chain, "owner": owner, "message": message}
            )
            self._next_id += 1

    def latest_events(self, limit: int = 100) -> list[dict[str, Any]]:
        with self.lock:
            items = list(self.events)
        return list(reversed(items))[: max(0, limit)]

    def record_sweep(self, report: SweepReport) -> None:
        with self.lock:
            self.last_sweep[report.chain] = report

    def get_sweep(self, chain: str) -> SweepReport | None:
        with self.lock:
            return self.last_sweep.get(chain)
