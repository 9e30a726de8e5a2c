from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from eospy.cleos import Cleos
from eospy.keys import EOSKey

from .errors import SubmitError
from .reconciler import ReconcileAction
from .settings import ChainConfig

log = logging.getLogger(__name__)

ACTION_NAMES = {
    ReconcileAction.APPROVE: "admactivate",
    ReconcileAction.DISAPPROVE: "admdisable",
}


@dataclass(frozen=True)
class SubmitReceipt:
    owner: str
    action: ReconcileAction
    transaction_id: str


class ActionSubmitter(Protocol):
    def submit(self, owner: str, action: ReconcileAction) -> SubmitReceipt: ...


def build_action(chain: ChainConfig, owner: str, action: ReconcileAction) -> dict[str, Any]:
    """Unsigned registry action for `owner`, authorized by the watchdog account."""
    if action not in ACTION_NAMES:
        raise SubmitError(f"Nothing to submit for {action.value}")
    return {
        "account": chain.contract,
        "name": ACTION_NAMES[action],
        "authorization": [{"actor": chain.watchdog_account, "permission": chain.watchdog_permission}],
        "data": {"sender": chain.watchdog_account, "owner": owner},
    }


class EosioActionSubmitter:
    """Signs and broadcasts one admactivate/admdisable transaction per call.

    No retry here: a failed submission propagates to the sweep, and the next
    sweep re-reads the registry and decides again.
    """

    def __init__(self, chain: ChainConfig, client: Cleos | None = None, key: Any = None):
        self.chain = chain
        self.client = client or Cleos(url=chain.rpc_url)
        self.key = key if key is not None else EOSKey(chain.private_key())

    def submit(self, owner: str, action: ReconcileAction) -> SubmitReceipt:
        payload = build_action(self.chain, owner, action)
        expiration = dt.datetime.now(dt.timezone.utc) + dt.timedelta(seconds=self.chain.expire_seconds)
        try:
            binargs = self.client.abi_json_to_bin(payload["account"], payload["name"], payload["data"])
            trx = {
                "actions": [dict(payload, data=binargs["binargs"])],
                "expiration": str(expiration.replace(microsecond=0)),
            }
            log.debug("%s executing %s for %s", self.chain.name, payload["name"], owner)
            resp = self.client.push_transaction(trx, self.key, broadcast=True)
        except Exception as e:
            raise SubmitError(f"{self.chain.chain_id} Error while executing {payload['name']} for {owner}: {e}") from e

        tx_id = resp.get("transaction_id") if isinstance(resp, dict) else None
        if not tx_id:
            raise SubmitError(f"{payload['name']} for {owner} was not accepted: {resp!r}")
        log.debug("%s %s for %s accepted in %s", self.chain.name, payload["name"], owner, tx_id)
        return SubmitReceipt(owner=owner, action=action, transaction_id=str(tx_id))
