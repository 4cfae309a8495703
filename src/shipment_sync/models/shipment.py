# src/shipment_sync/models/shipment.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

PROVIDER = "shiprocket"


def utcnow() -> datetime:
    """Naive UTC timestamp; the DateTime columns store no zone."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class Order(Base):
    """Checkout-owned order row. Only the shipping-relevant columns are mapped."""
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_number: Mapped[str] = mapped_column(String(64))
    customer_name: Mapped[str] = mapped_column(String(255), default="")
    customer_email: Mapped[str] = mapped_column(String(255), default="")
    customer_mobile: Mapped[str] = mapped_column(String(32), default="")

    # legacy single-product fields, used when customization_data has no items
    product_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone_model: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    unit_price: Mapped[float] = mapped_column(Float, default=0.0)

    total_amount: Mapped[float] = mapped_column(Float, default=0.0)
    shipping_cost: Mapped[float] = mapped_column(Float, default=0.0)
    payment_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    order_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    customization_data: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    shipping_address_line1: Mapped[str] = mapped_column(String(255), default="")
    shipping_address_line2: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    shipping_city: Mapped[str] = mapped_column(String(120), default="")
    shipping_state: Mapped[str] = mapped_column(String(120), default="")
    shipping_pincode: Mapped[str] = mapped_column(String(16), default="")

    created_at: Mapped[datetime] = mapped_column(DateTime(), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(), default=utcnow, onupdate=utcnow)


class Shipment(Base):
    __tablename__ = "shipments"
    __table_args__ = (UniqueConstraint("order_id", name="uq_shipments_order_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # one shipment per order; no FK cascade on purpose
    order_id: Mapped[int] = mapped_column(Integer, index=True)
    provider: Mapped[str] = mapped_column(String(32), default=PROVIDER)
    carrier_order_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    carrier_shipment_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    awb: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    courier_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    courier_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(64), default="created")
    tracking_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    label_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    pickup_location: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    request_payload: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    raw_response: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(), default=utcnow, onupdate=utcnow)

    def admin_view(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "provider": self.provider,
            "carrier_order_id": self.carrier_order_id,
            "carrier_shipment_id": self.carrier_shipment_id,
            "awb": self.awb,
            "courier_id": self.courier_id,
            "courier_name": self.courier_name,
            "status": self.status,
            "tracking_url": self.tracking_url,
            "label_url": self.label_url,
            "pickup_location": self.pickup_location,
            "request_payload": self.request_payload,
            "raw_response": self.raw_response,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def public_view(self) -> dict[str, Any]:
        """Customer-facing projection: never exposes payloads or carrier ids."""
        from shipment_sync.rules.status_mapper import display_status

        return {
            "id": self.id,
            "order_id": self.order_id,
            "status": display_status(self.status),
            "awb": self.awb,
            "tracking_url": self.tracking_url,
            "label_url": self.label_url,
            "updated_at": self.updated_at,
        }


class NotificationLog(Base):
    """One row per email attempt, sent or failed."""
    __tablename__ = "notification_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(Integer, index=True)
    email_type: Mapped[str] = mapped_column(String(32))
    recipient_email: Mapped[str] = mapped_column(String(255), default="")
    subject: Mapped[str] = mapped_column(String(255), default="")
    status: Mapped[str] = mapped_column(String(16))
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(), default=utcnow)
