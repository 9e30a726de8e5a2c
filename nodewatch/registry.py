from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from .errors import RegistryError

log = logging.getLogger(__name__)

NODES_TABLE = "nodes"


@dataclass(frozen=True)
class Node:
    owner: str
    is_active: bool
    url: str
    extra: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


class NodeSource(Protocol):
    def fetch_nodes(self, limit: int) -> list[Node]: ...


def _row_to_node(row: Any) -> Node:
    if not isinstance(row, dict) or not row.get("owner"):
        raise RegistryError(f"Malformed registry row: {row!r}")
    extra = {k: v for k, v in row.items() if k not in {"owner", "is_active", "url"}}
    return Node(
        owner=str(row["owner"]),
        is_active=bool(row.get("is_active")),
        url=str(row.get("url") or ""),
        extra=extra,
    )


class ChainRegistry:
    """Reads the registry contract's `nodes` table through the chain HTTP API."""

    def __init__(self, rpc_url: str, contract: str, timeout_s: float = 10.0, client: httpx.Client | None = None):
        self.rpc_url = rpc_url.rstrip("/")
        self.contract = contract
        self.timeout_s = timeout_s
        self._client = client or httpx.Client(timeout=timeout_s)

    def close(self) -> None:
        self._client.close()

    def _post(self, endpoint: str, payload: dict[str, Any] | None = None) -> Any:
        url = f"{self.rpc_url}/v1/chain/{endpoint}"
        try:
            resp = self._client.post(url, json=payload or {}, timeout=self.timeout_s)
        except httpx.HTTPError as e:
            raise RegistryError(f"{endpoint} failed: {type(e).__name__}: {e}") from e
        if not resp.is_success:
            raise RegistryError(f"{endpoint} failed: HTTP {resp.status_code}: {resp.text[:200]}")
        try:
            return resp.json()
        except ValueError as e:
            raise RegistryError(f"{endpoint} returned invalid JSON") from e

    def chain_info(self) -> dict[str, Any]:
        data = self._post("get_info")
        if not isinstance(data, dict):
            raise RegistryError("get_info returned a non-object body")
        return data

    def fetch_nodes(self, limit: int = 1000) -> list[Node]:
        """Return registry entries in table order, at most `limit` of them."""
        data = self._post(
            "get_table_rows",
            {
                "json": True,
                "code": self.contract,
                "scope": self.contract,
                "table": NODES_TABLE,
                "limit": limit,
            },
        )
        if not isinstance(data, dict) or not isinstance(data.get("rows"), list):
            raise RegistryError("get_table_rows response has no 'rows' list")
        if data.get("more"):
            log.warning("Registry %s has more than %d nodes; only the first %d are watched", self.contract, limit, limit)
        return [_row_to_node(r) for r in data["rows"]]
