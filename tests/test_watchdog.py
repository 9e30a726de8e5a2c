import httpx
import pytest

from conftest import CHAIN_ID, OTHER_CHAIN_ID, FakeProbe, FakeSource, FakeSubmitter, ok_for
from nodewatch.errors import RegistryError
from nodewatch.health import HealthProbe, ProbeKind, ProbeResult
from nodewatch.reconciler import ReconcileAction
from nodewatch.registry import Node
from nodewatch.scheduler import LoopScheduler
from nodewatch.watchdog import ChainWatchdog


def _watchdog(chain, runtime, nodes=None, results=None, source_error=None, fail_on=None, sleep=None):
    source = FakeSource(nodes, error=source_error)
    probe = FakeProbe(results)
    submitter = FakeSubmitter(fail_on=fail_on)
    w = ChainWatchdog(chain, source, probe, submitter, runtime, sleep=sleep)
    return w, source, probe, submitter


def test_inactive_healthy_node_is_approved(chain, runtime):
    node = Node("nodeaaaaaaaa", False, "https://a.test")
    w, _, _, submitter = _watchdog(chain, runtime, [node], {"https://a.test": ok_for(CHAIN_ID)})

    report = w.sweep()

    assert submitter.submitted == [("nodeaaaaaaaa", ReconcileAction.APPROVE)]
    assert report.outcomes[0].action is ReconcileAction.APPROVE
    assert report.outcomes[0].transaction_id == "tx-1"
    assert runtime.get_sweep("eos") is report


def test_active_node_timing_out_is_disapproved(chain, runtime):
    node = Node("nodeaaaaaaaa", True, "https://a.test")
    w, _, _, submitter = _watchdog(chain, runtime, [node])

    report = w.sweep()

    assert submitter.submitted == [("nodeaaaaaaaa", ReconcileAction.DISAPPROVE)]
    assert report.outcomes[0].probe is ProbeKind.UNREACHABLE
    assert any(e["level"] == "WARN" and e["owner"] == "nodeaaaaaaaa" for e in runtime.latest_events())


def test_active_node_with_legacy_status_is_disapproved(chain, runtime):
    node = Node("nodeaaaaaaaa", True, "https://a.test")
    legacy = ProbeResult(ProbeKind.LEGACY_FORMAT, detail="No 'chains' field")
    w, _, _, submitter = _watchdog(chain, runtime, [node], {"https://a.test": legacy})

    w.sweep()

    assert submitter.submitted == [("nodeaaaaaaaa", ReconcileAction.DISAPPROVE)]


def test_node_healthy_only_for_another_chain_is_disapproved(chain, runtime):
    node = Node("nodeaaaaaaaa", True, "https://a.test")
    w, _, _, submitter = _watchdog(chain, runtime, [node], {"https://a.test": ok_for(OTHER_CHAIN_ID)})

    w.sweep()

    assert submitter.submitted == [("nodeaaaaaaaa", ReconcileAction.DISAPPROVE)]


def test_node_with_broken_host_does_not_block_the_sweep(chain, runtime):
    def handler(request):
        return httpx.Response(200, json={"chains": [{"chainId": CHAIN_ID, "status": "ok"}]})

    probe = HealthProbe(timeout_s=0.5, client=httpx.Client(transport=httpx.MockTransport(handler)))
    nodes = [
        Node("badnode", True, "http://a..b/"),
        Node("idnanode", True, "http://xn--/"),
        Node("goodnode", False, "http://good.test/"),
    ]
    submitter = FakeSubmitter()
    w = ChainWatchdog(chain, FakeSource(nodes), probe, submitter, runtime)

    assert w.run_once() == 30 * 60
    assert submitter.submitted == [
        ("badnode", ReconcileAction.DISAPPROVE),
        ("idnanode", ReconcileAction.DISAPPROVE),
        ("goodnode", ReconcileAction.APPROVE),
    ]
    assert runtime.get_sweep("eos").ok is True


def test_converged_nodes_produce_no_transactions(chain, runtime):
    nodes = [Node("nodeaaaaaaaa", True, "https://a.test"), Node("nodebbbbbbbb", False, "https://b.test")]
    w, _, probe, submitter = _watchdog(chain, runtime, nodes, {"https://a.test": ok_for(CHAIN_ID)})

    report = w.sweep()

    assert submitter.submitted == []
    assert probe.probed == ["https://a.test", "https://b.test"]
    assert [o.action for o in report.outcomes] == [ReconcileAction.NOOP, ReconcileAction.NOOP]
    assert report.actions() == []


def test_nodes_reconciled_in_registry_order(chain, runtime):
    nodes = [
        Node("nodecccccccc", True, "https://c.test"),
        Node("nodeaaaaaaaa", False, "https://a.test"),
        Node("nodebbbbbbbb", True, "https://b.test"),
    ]
    w, _, _, submitter = _watchdog(chain, runtime, nodes, {"https://a.test": ok_for(CHAIN_ID)})

    w.sweep()

    assert submitter.submitted == [
        ("nodecccccccc", ReconcileAction.DISAPPROVE),
        ("nodeaaaaaaaa", ReconcileAction.APPROVE),
        ("nodebbbbbbbb", ReconcileAction.DISAPPROVE),
    ]


def test_sweep_uses_configured_row_limit(chain, runtime):
    chain = chain.model_copy(update={"row_limit": 250})
    w, source, _, _ = _watchdog(chain, runtime, [])
    w.sweep()
    assert source.calls == [250]


def test_many_nodes_sweep_again_without_delay(chain, runtime):
    nodes = [Node(f"node{i:08d}", False, f"https://{i}.test") for i in range(15)]
    w, _, _, _ = _watchdog(chain, runtime, nodes)

    assert w.run_once() == 0
    assert runtime.get_sweep("eos").next_delay_s == 0


def test_few_nodes_wait_the_long_interval(chain, runtime):
    nodes = [Node(f"node{i:08d}", False, f"https://{i}.test") for i in range(3)]
    w, _, _, _ = _watchdog(chain, runtime, nodes)

    assert w.run_once() == 30 * 60


def test_submit_failure_aborts_sweep_and_backs_off(chain, runtime):
    nodes = [
        Node("nodeaaaaaaaa", True, "https://a.test"),
        Node("nodebbbbbbbb", True, "https://b.test"),
        Node("nodecccccccc", True, "https://c.test"),
    ]
    w, _, probe, submitter = _watchdog(chain, runtime, nodes, fail_on={"nodebbbbbbbb"})

    delay = w.run_once()

    assert delay == 10
    assert submitter.submitted == [("nodeaaaaaaaa", ReconcileAction.DISAPPROVE)]
    assert probe.probed == ["https://a.test", "https://b.test"]
    report = runtime.get_sweep("eos")
    assert report.ok is False
    assert "SubmitError" in report.error
    assert runtime.latest_events(1)[0]["level"] == "ERROR"


def test_sweep_propagates_errors(chain, runtime):
    w, _, _, _ = _watchdog(chain, runtime, source_error=RegistryError("get_table_rows failed"))
    with pytest.raises(RegistryError):
        w.sweep()
    assert runtime.get_sweep("eos").error == "RegistryError: get_table_rows failed"


def test_loop_keeps_running_through_failures(chain, runtime):
    delays = []
    calls = {"n": 0}
    node = Node("nodeaaaaaaaa", True, "https://a.test")

    class FlakySource:
        def fetch_nodes(self, limit):
            calls["n"] += 1
            if calls["n"] <= 2:
                raise RegistryError("rpc down")
            return [node]

    def sleep(delay):
        delays.append(delay)
        if len(delays) == 3:
            w.stop()

    submitter = FakeSubmitter()
    w = ChainWatchdog(chain, FlakySource(), FakeProbe(), submitter, runtime, sleep=sleep)
    w.run()

    assert delays == [10, 10, 30 * 60]
    assert submitter.submitted == [("nodeaaaaaaaa", ReconcileAction.DISAPPROVE)]
    messages = [e["message"] for e in runtime.latest_events()]
    assert messages[0] == "Watchdog stopped"
    assert sum("Error during sweep" in m for m in messages) == 2


def test_loop_catches_unexpected_errors(chain, runtime):
    delays = []

    def sleep(delay):
        delays.append(delay)
        w.stop()

    w, _, _, _ = _watchdog(chain, runtime, source_error=KeyError("rows"), sleep=sleep)
    w.scheduler = LoopScheduler(error_backoff_s=7)
    w.run()

    assert delays == [7]


def test_start_runs_in_background_and_stops(chain, runtime):
    w, source, _, _ = _watchdog(chain, runtime, [])
    w.start()
    w.start()
    w.stop()
    w.join(timeout=5)
    assert not w.alive
    assert len(source.calls) <= 1
