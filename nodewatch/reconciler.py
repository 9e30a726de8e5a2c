from __future__ import annotations

from enum import Enum


class ReconcileAction(str, Enum):
    APPROVE = "approve"
    DISAPPROVE = "disapprove"
    NOOP = "noop"


def decide(is_active: bool, healthy: bool) -> ReconcileAction:
    """Map the on-chain activation flag and the probed health to an action.

    Only a divergence produces an action; a converged node is left alone.
    """
    if healthy and not is_active:
        return ReconcileAction.APPROVE
    if is_active and not healthy:
        return ReconcileAction.DISAPPROVE
    return ReconcileAction.NOOP
