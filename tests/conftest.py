import sys

import pytest

# Ensure project root is importable (so `import cli` works without installing)
import os as _os
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from nodewatch.errors import SubmitError
from nodewatch.health import ChainStatus, ProbeKind, ProbeResult
from nodewatch.registry import Node
from nodewatch.runtime import RuntimeState
from nodewatch.settings import ChainConfig
from nodewatch.submitter import SubmitReceipt

CHAIN_ID = "e70aaab8997e1dfce58fbfac80cbbb8fecec7b99cf982a9444273cbc64c41473"
OTHER_CHAIN_ID = "aca376f206b8fc25a6ed44dbdc66547c36c6c33e3a119ffbeaef943642f0e906"


def ok_for(*chain_ids: str) -> ProbeResult:
    return ProbeResult(ProbeKind.NEW_FORMAT, chains=tuple(ChainStatus(c, "ok") for c in chain_ids))


class FakeSource:
    def __init__(self, nodes=None, error: Exception | None = None):
        self.nodes = list(nodes or [])
        self.error = error
        self.calls: list[int] = []

    def fetch_nodes(self, limit: int) -> list[Node]:
        self.calls.append(limit)
        if self.error:
            raise self.error
        return list(self.nodes)


class FakeProbe:
    """Returns canned results per URL; unknown URLs are unreachable."""

    def __init__(self, results: dict[str, ProbeResult] | None = None):
        self.results = dict(results or {})
        self.probed: list[str] = []

    def probe(self, node_url: str) -> ProbeResult:
        self.probed.append(node_url)
        return self.results.get(node_url, ProbeResult(ProbeKind.UNREACHABLE, detail="ReadTimeout: timed out"))


class FakeSubmitter:
    def __init__(self, fail_on: set[str] | None = None):
        self.fail_on = set(fail_on or ())
        self.submitted: list[tuple[str, object]] = []

    def submit(self, owner, action):
        if owner in self.fail_on:
            raise SubmitError(f"transaction for {owner} rejected")
        self.submitted.append((owner, action))
        return SubmitReceipt(owner=owner, action=action, transaction_id=f"tx-{len(self.submitted)}")


@pytest.fixture
def chain() -> ChainConfig:
    return ChainConfig(
        name="eos",
        chain_id=CHAIN_ID,
        contract="priveosrules",
        watchdog_account="slantagpurse",
        watchdog_permission="active",
        rpc_url="http://rpc.test",
        signing_key="5KXtuBpLc6Y9Q8Q8s8CQm2G7L98bV8PK1ZKnSKvNeoiuhZw6uDH",
    )


@pytest.fixture
def runtime() -> RuntimeState:
    return RuntimeState(max_events=100)
