# src/shipment_sync/rules/transitions.py
from __future__ import annotations

from typing import Optional

CREATED = "created"
AWB_ASSIGNED = "awb_assigned"
LABEL_GENERATED = "label_generated"
CANCELLED = "cancelled"
ERROR = "error"

# Rank of the statuses this system sets itself. Carrier-reported statuses
# (free text written by Track/Sync) sit after label generation.
_LOCAL_RANK = {
    ERROR: -1,
    CREATED: 0,
    AWB_ASSIGNED: 1,
    LABEL_GENERATED: 2,
}
_CARRIER_RANK = 3

# Order statuses this subsystem must not move away from.
TERMINAL_ORDER_STATUSES = frozenset({"cancelled", "delivered"})

# Payment states for which delivery tracking is worth a carrier call.
PAID_LIKE = frozenset({"paid", "completed", "confirmed"})


def _norm(status: Optional[str]) -> str:
    return (status or "").strip().lower()


def is_cancelled(status: Optional[str]) -> bool:
    return _norm(status) == CANCELLED


def is_terminal(status: Optional[str]) -> bool:
    return is_cancelled(status)


def rank(status: Optional[str]) -> int:
    s = _norm(status)
    if s == CANCELLED:
        return 99
    return _LOCAL_RANK.get(s, _CARRIER_RANK if s else _LOCAL_RANK[CREATED])


def advance(current: Optional[str], target: str) -> str:
    """Move to `target` only if that is a step forward; otherwise keep `current`.

    `cancelled` is terminal and never left.
    """
    if is_terminal(current):
        return current or CANCELLED
    if rank(target) >= rank(current):
        return target
    return current or target


def observed(current: Optional[str], fresh: Optional[str]) -> Optional[str]:
    """Carrier-observed status wins over whatever is stored, unless cancelled."""
    if is_terminal(current):
        return current
    return fresh or current


def order_is_terminal(order_status: Optional[str]) -> bool:
    return _norm(order_status) in TERMINAL_ORDER_STATUSES
