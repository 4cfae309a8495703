# src/shipment_sync/io/store.py
from __future__ import annotations

import logging
from typing import Any, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from shipment_sync.models import NotificationLog, Order, Shipment
from shipment_sync.models.shipment import utcnow
from shipment_sync.rules.transitions import CANCELLED, PAID_LIKE


class ShipmentStore:
    """Reads and writes for orders/shipments, keyed by order id.

    Every write commits immediately: each lifecycle operation is a single
    read-then-write unit of work.
    """

    def __init__(self, db: Session, *, logger: Optional[logging.Logger] = None) -> None:
        self.db = db
        self.logger = logger or logging.getLogger("shipment_sync.io.store")

    # --- reads ---------------------------------------------------------------

    def get_order(self, order_id: int) -> Optional[Order]:
        return self.db.query(Order).filter(Order.id == order_id).first()

    def get_shipment(self, order_id: int) -> Optional[Shipment]:
        return self.db.query(Shipment).filter(Shipment.order_id == order_id).first()

    def select_stale_unassigned(self, limit: int) -> List[Shipment]:
        """Shipments without an AWB but with a carrier id, oldest update first."""
        return (
            self.db.query(Shipment)
            .filter(or_(Shipment.awb.is_(None), Shipment.awb == ""))
            .filter(or_(Shipment.carrier_order_id.isnot(None), Shipment.carrier_shipment_id.isnot(None)))
            .filter(Shipment.status != CANCELLED)
            .order_by(Shipment.updated_at.asc(), Shipment.id.asc())
            .limit(limit)
            .all()
        )

    def select_tracking_candidates(self, limit: int) -> List[Shipment]:
        """Shipments with an AWB on paid-like orders, oldest update first."""
        return (
            self.db.query(Shipment)
            .join(Order, Order.id == Shipment.order_id)
            .filter(Shipment.awb.isnot(None), Shipment.awb != "")
            .filter(Shipment.status != CANCELLED)
            .filter(Order.payment_status.isnot(None))
            .filter(Order.payment_status.in_(sorted(PAID_LIKE)))
            .order_by(Shipment.updated_at.asc(), Shipment.id.asc())
            .limit(limit)
            .all()
        )

    # --- writes --------------------------------------------------------------

    def insert_shipment(self, **fields: Any) -> Shipment:
        obj = Shipment(**fields)
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def update_shipment(self, shipment: Shipment, **fields: Any) -> Shipment:
        for key, value in fields.items():
            setattr(shipment, key, value)
        # bump even when only JSON columns changed
        shipment.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(shipment)
        return shipment

    def set_order_status(self, order: Order, status: str) -> Order:
        order.order_status = status
        order.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(order)
        return order

    def log_notification(
        self,
        order_id: int,
        email_type: str,
        recipient: str,
        subject: str,
        status: str,
        error_message: Optional[str] = None,
    ) -> None:
        try:
            self.db.add(NotificationLog(
                order_id=order_id,
                email_type=email_type,
                recipient_email=recipient or "",
                subject=subject,
                status=status,
                error_message=error_message,
            ))
            self.db.commit()
        except Exception as ex:
            # the log is best-effort; never let it fail the caller
            self.db.rollback()
            self.logger.warning("Failed to log %s email for order %s: %s", email_type, order_id, ex)

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
