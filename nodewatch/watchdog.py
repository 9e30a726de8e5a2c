from __future__ import annotations

import logging
from threading import Event, Thread
from typing import Callable

from .alerts import node_changed
from .health import HealthProbe
from .reconciler import ReconcileAction, decide
from .registry import Node, NodeSource
from .runtime import NodeOutcome, RuntimeState, SweepReport, utc_now
from .scheduler import LoopScheduler
from .settings import ChainConfig, settings
from .submitter import ActionSubmitter

log = logging.getLogger(__name__)


class ChainWatchdog:
    """Keeps one chain's registry activation flags in line with node health.

    Each sweep re-reads the registry, probes every node and submits at most one
    action per diverging node. Any sweep failure is logged and retried after a
    backoff; the loop only ends when stop() is called at shutdown.
    """

    def __init__(
        self,
        chain: ChainConfig,
        source: NodeSource,
        probe: HealthProbe,
        submitter: ActionSubmitter,
        runtime: RuntimeState,
        scheduler: LoopScheduler | None = None,
        sleep: Callable[[float], object] | None = None,
    ):
        self.chain = chain
        self.source = source
        self.probe = probe
        self.submitter = submitter
        self.runtime = runtime
        self.scheduler = scheduler or LoopScheduler.for_chain(chain)
        self._stop = Event()
        self._sleep = sleep or self._stop.wait
        self._thr: Thread | None = None

    @property
    def name(self) -> str:
        return self.chain.name

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop.clear()
        self._thr = Thread(target=self.run, name=f"watchdog-{self.name}", daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thr:
            self._thr.join(timeout)

    @property
    def alive(self) -> bool:
        return bool(self._thr and self._thr.is_alive())

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def run(self) -> None:
        self.runtime.log_event("INFO", "Watchdog started", chain=self.name)
        while not self._stop.is_set():
            delay = self.run_once()
            if delay > 0 and not self._stop.is_set():
                self._sleep(delay)
        self.runtime.log_event("INFO", "Watchdog stopped", chain=self.name)

    def run_once(self) -> float:
        """One sweep behind the error boundary. Returns the delay before the next one."""
        try:
            report = self.sweep()
        except Exception as e:
            delay = self.scheduler.after_failure()
            log.exception("%s sweep failed", self.name)
            self.runtime.log_event(
                "ERROR",
                f"Error during sweep: {type(e).__name__}: {e}. Retrying in {delay:g}s",
                chain=self.name,
            )
            return delay
        return report.next_delay_s or 0.0

    def sweep(self) -> SweepReport:
        report = SweepReport(chain=self.name)
        try:
            nodes = self.source.fetch_nodes(self.chain.row_limit)
            report.node_count = len(nodes)
            log.debug("%s registry returned %d nodes", self.name, len(nodes))
            for node in nodes:
                report.outcomes.append(self.handle_node(node))
        except Exception as e:
            report.error = f"{type(e).__name__}: {e}"
            raise
        else:
            report.next_delay_s = self.scheduler.after_sweep(report.node_count)
            log.info(
                "%s swept %d nodes, %d actions, next sweep in %gs",
                self.name,
                report.node_count,
                len(report.actions()),
                report.next_delay_s,
            )
        finally:
            report.finished_at = utc_now()
            self.runtime.record_sweep(report)
        return report

    def handle_node(self, node: Node) -> NodeOutcome:
        result = self.probe.probe(node.url)
        healthy = result.healthy_for(self.chain.chain_id)
        if healthy:
            log.debug("%s node %s is OKAY", self.name, node.owner)
        else:
            log.debug("%s node %s is NOT okay (%s %s)", self.name, node.owner, result.kind.value, result.detail)

        action = decide(node.is_active, healthy)
        tx_id = None
        if action is not ReconcileAction.NOOP:
            receipt = self.submitter.submit(node.owner, action)
            tx_id = receipt.transaction_id
            self._report_change(node, action, tx_id, result.detail)

        return NodeOutcome(
            owner=node.owner,
            was_active=node.is_active,
            healthy=healthy,
            probe=result.kind,
            action=action,
            transaction_id=tx_id,
            detail=result.detail,
        )

    def _report_change(self, node: Node, action: ReconcileAction, tx_id: str, detail: str) -> None:
        activated = action is ReconcileAction.APPROVE
        if activated:
            self.runtime.log_event("INFO", f"Node activated ({tx_id})", chain=self.name, owner=node.owner)
        else:
            self.runtime.log_event(
                "WARN", f"Node disabled: {detail or 'unhealthy'} ({tx_id})", chain=self.name, owner=node.owner
            )
        if settings.enable_email:
            node_changed(self.name, node.owner, activated, node.url, tx_id, detail)
