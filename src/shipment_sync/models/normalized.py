from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Optional


@dataclass(frozen=True)
class CarrierIds:
    """Carrier order/shipment identifiers pulled out of a response."""
    order_id: Optional[str] = None
    shipment_id: Optional[str] = None

    @property
    def any(self) -> bool:
        return bool(self.order_id or self.shipment_id)


@dataclass(frozen=True)
class ShipmentFacts:
    # Every field is independent: a response may carry the AWB but no courier.
    awb: Optional[str] = None
    courier_name: Optional[str] = None
    courier_id: Optional[str] = None
    status: Optional[str] = None
    tracking_url: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convenience for logging/tests."""
        return asdict(self)


@dataclass
class ShipmentResult:
    """What every lifecycle operation hands back to the route layer.

    `shipment` is the admin projection of the row after the operation;
    `carrier` the raw carrier response (None when no call was made).
    """
    shipment: dict[str, Any]
    carrier: Any = None
    note: Optional[str] = None
    synced_from: Optional[str] = None
    salvaged: bool = False
    notified: bool = False
    extra: Optional[dict[str, Any]] = None


@dataclass
class SyncOutcome:
    """One row of a batch run; `error` is set when the item failed."""
    order_id: int
    shipment_id: Optional[int] = None
    awb: Optional[str] = None
    status: Optional[str] = None
    synced_from: Optional[str] = None
    notified: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["ok"] = self.ok
        return d
