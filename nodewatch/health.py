from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

STATUS_PATH = "/broker/status/"


class ProbeKind(str, Enum):
    NEW_FORMAT = "new_format"
    LEGACY_FORMAT = "legacy_format"
    PARSE_ERROR = "parse_error"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class ChainStatus:
    chain_id: str
    status: str


@dataclass(frozen=True)
class ProbeResult:
    kind: ProbeKind
    chains: tuple[ChainStatus, ...] = ()
    detail: str = ""
    latency_ms: float | None = None

    def healthy_for(self, chain_id: str) -> bool:
        # Legacy responses (no per-chain list) count as unhealthy.
        if self.kind is not ProbeKind.NEW_FORMAT:
            return False
        return any(c.chain_id == chain_id and c.status == "ok" for c in self.chains)


def status_url(node_url: str) -> str:
    """Resolve the status endpoint against the node's advertised URL.

    The path is absolute, so any path on the advertised URL is replaced.
    """
    return str(httpx.URL(node_url).join(STATUS_PATH))


def parse_status(data: Any) -> ProbeResult:
    if not isinstance(data, dict):
        return ProbeResult(ProbeKind.PARSE_ERROR, detail=f"Expected a JSON object, got {type(data).__name__}")
    raw = data.get("chains")
    if not raw and not isinstance(raw, list):
        return ProbeResult(ProbeKind.LEGACY_FORMAT, detail="No 'chains' field")
    if not isinstance(raw, list):
        return ProbeResult(ProbeKind.PARSE_ERROR, detail=f"'chains' is {type(raw).__name__}, not a list")

    chains: list[ChainStatus] = []
    for entry in raw:
        if not isinstance(entry, dict):
            return ProbeResult(ProbeKind.PARSE_ERROR, detail=f"Malformed chains entry: {entry!r}")
        chains.append(ChainStatus(chain_id=str(entry.get("chainId", "")), status=str(entry.get("status", ""))))
    return ProbeResult(ProbeKind.NEW_FORMAT, chains=tuple(chains))


class HealthProbe:
    """Queries a node's /broker/status/ endpoint.

    Never raises for node-level problems: timeouts, refused connections, bad
    URLs, non-2xx answers and unparseable bodies all come back as a
    ProbeResult that is unhealthy for every chain.
    """

    def __init__(self, timeout_s: float = 5.0, client: httpx.Client | None = None):
        self.timeout_s = timeout_s
        self._client = client

    def probe(self, node_url: str) -> ProbeResult:
        start = time.time()
        try:
            url = status_url(node_url)
        except Exception as e:
            return ProbeResult(ProbeKind.UNREACHABLE, detail=f"{type(e).__name__}: {e}")
        if httpx.URL(url).scheme not in {"http", "https"}:
            return ProbeResult(ProbeKind.UNREACHABLE, detail=f"Unsupported node URL {node_url!r}")

        try:
            if self._client is not None:
                resp = self._client.get(url, timeout=self.timeout_s)
            else:
                with httpx.Client(timeout=self.timeout_s, follow_redirects=False) as client:
                    resp = client.get(url)
        except httpx.HTTPError as e:
            return ProbeResult(ProbeKind.UNREACHABLE, detail=f"{type(e).__name__}: {e}", latency_ms=_since(start))
        except Exception as e:
            # Bad hosts (IDNA) fail inside the client; still just an unhealthy node.
            return ProbeResult(ProbeKind.UNREACHABLE, detail=f"Error: {type(e).__name__}: {e}", latency_ms=_since(start))
        latency_ms = _since(start)

        if not resp.is_success:
            return ProbeResult(ProbeKind.UNREACHABLE, detail=f"HTTP {resp.status_code}", latency_ms=latency_ms)
        try:
            data = resp.json()
        except ValueError:
            return ProbeResult(ProbeKind.PARSE_ERROR, detail="Invalid JSON", latency_ms=latency_ms)

        result = parse_status(data)
        return ProbeResult(result.kind, chains=result.chains, detail=result.detail, latency_ms=latency_ms)


def _since(start: float) -> float:
    return round((time.time() - start) * 1000.0, 2)
