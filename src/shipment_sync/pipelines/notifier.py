# src/shipment_sync/pipelines/notifier.py
"""
Customer notifications for shipment events.

`NotificationGate` decides *whether* an email goes out; a `Mailer` only
delivers it. Delivery failures never reach the operation that triggered the
email: they are logged and recorded in `notification_logs`.
"""
from __future__ import annotations

import html
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional, Protocol

from shipment_sync.io.store import ShipmentStore
from shipment_sync.models import EnvCfg, Order, Shipment

EMAIL_TYPE_TRACKING = "tracking_update"
EMAIL_TYPE_CANCELLED = "order_cancelled"

SENT = "sent"
FAILED = "failed"


@dataclass(frozen=True)
class TrackingContext:
    order_id: int
    order_number: str
    customer_email: str
    customer_name: str
    awb: str
    tracking_url: Optional[str] = None


@dataclass(frozen=True)
class CancellationContext:
    order_id: int
    order_number: str
    customer_email: str
    customer_name: str
    awb: Optional[str] = None


def tracking_subject(order_number: str) -> str:
    return f"Your Order {order_number} is Shipped! - Tracking Info"


def cancellation_subject(order_number: str) -> str:
    return f"Your Order {order_number} has been Cancelled"


class Mailer(Protocol):
    """Delivers one email; raises on failure."""

    def send_tracking_email(self, ctx: TrackingContext) -> None: ...

    def send_cancellation_email(self, ctx: CancellationContext) -> None: ...


class MailerConfigError(RuntimeError):
    """SMTP credentials are not configured."""


def render_tracking_html(ctx: TrackingContext) -> str:
    esc = html.escape
    link = ""
    if ctx.tracking_url:
        link = f'<p><a href="{esc(ctx.tracking_url, quote=True)}">Track Your Order</a></p>'
    return (
        "<html><body>"
        f"<h2>Your order {esc(ctx.order_number)} is on its way</h2>"
        f"<p>Dear {esc(ctx.customer_name or 'Customer')},</p>"
        "<p>Your order has been shipped.</p>"
        f"<p><strong>AWB / Tracking Number:</strong> {esc(ctx.awb)}</p>"
        f"{link}"
        "</body></html>"
    )


def render_cancellation_html(ctx: CancellationContext) -> str:
    esc = html.escape
    awb = f"<p>Shipment AWB: {esc(ctx.awb)}</p>" if ctx.awb else ""
    return (
        "<html><body>"
        f"<h2>Order {esc(ctx.order_number)} cancelled</h2>"
        f"<p>Dear {esc(ctx.customer_name or 'Customer')},</p>"
        "<p>Your order has been cancelled and its shipment withdrawn.</p>"
        f"{awb}"
        "</body></html>"
    )


class SmtpMailer:
    """smtplib delivery configured from EMAIL_* settings."""

    def __init__(self, cfg: EnvCfg, *, timeout: float = 30.0) -> None:
        self.host = cfg.EMAIL_HOST
        self.port = cfg.EMAIL_PORT
        self.user = cfg.EMAIL_USER
        self.password = cfg.EMAIL_PASSWORD
        self.secure = cfg.EMAIL_SECURE
        self.sender = cfg.EMAIL_FROM or cfg.EMAIL_USER
        self.timeout = timeout

    def _message(self, to: str, subject: str, body_html: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML-capable mail client.")
        msg.add_alternative(body_html, subtype="html")
        return msg

    def _send(self, msg: EmailMessage) -> None:
        if not self.user or not self.password:
            raise MailerConfigError("Email credentials not configured")
        if not self.host:
            raise MailerConfigError("EMAIL_HOST not configured")

        if self.secure:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout,
                                      context=ssl.create_default_context())
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        with server:
            if not self.secure:
                server.starttls(context=ssl.create_default_context())
            server.login(self.user, self.password)
            server.send_message(msg)

    def send_tracking_email(self, ctx: TrackingContext) -> None:
        self._send(self._message(ctx.customer_email, tracking_subject(ctx.order_number),
                                 render_tracking_html(ctx)))

    def send_cancellation_email(self, ctx: CancellationContext) -> None:
        self._send(self._message(ctx.customer_email, cancellation_subject(ctx.order_number),
                                 render_cancellation_html(ctx)))


def should_notify(prev_awb: Optional[str], new_awb: Optional[str]) -> bool:
    """Only a non-empty AWB that differs from the previous one is news."""
    new = (new_awb or "").strip()
    return bool(new) and new != (prev_awb or "").strip()


class NotificationGate:
    def __init__(
        self,
        mailer: Mailer,
        store: ShipmentStore,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.mailer = mailer
        self.store = store
        self.logger = logger or logging.getLogger("shipment_sync.notifier")

    def notify_awb_change(self, order: Optional[Order], shipment: Shipment, prev_awb: Optional[str]) -> bool:
        """Send the tracking email if `shipment.awb` is new relative to `prev_awb`.

        Returns True only when an email was actually delivered.
        """
        if not should_notify(prev_awb, shipment.awb):
            return False
        if order is None:
            self.logger.warning("AWB changed for order %s but the order row is missing; no email", shipment.order_id)
            return False

        ctx = TrackingContext(
            order_id=order.id,
            order_number=order.order_number,
            customer_email=order.customer_email,
            customer_name=order.customer_name,
            awb=shipment.awb or "",
            tracking_url=shipment.tracking_url,
        )
        return self._deliver(
            order.id, EMAIL_TYPE_TRACKING, order.customer_email,
            tracking_subject(order.order_number),
            lambda: self.mailer.send_tracking_email(ctx),
        )

    def notify_cancelled(self, order: Optional[Order], shipment: Shipment) -> bool:
        if order is None:
            return False
        ctx = CancellationContext(
            order_id=order.id,
            order_number=order.order_number,
            customer_email=order.customer_email,
            customer_name=order.customer_name,
            awb=shipment.awb,
        )
        return self._deliver(
            order.id, EMAIL_TYPE_CANCELLED, order.customer_email,
            cancellation_subject(order.order_number),
            lambda: self.mailer.send_cancellation_email(ctx),
        )

    def _deliver(self, order_id: int, email_type: str, recipient: str, subject: str, send) -> bool:
        try:
            send()
        except Exception as ex:
            self.logger.warning("%s email for order %s failed: %s", email_type, order_id, ex)
            self.store.log_notification(order_id, email_type, recipient, subject, FAILED, str(ex))
            return False
        self.logger.info("%s email sent for order %s to %s", email_type, order_id, recipient)
        self.store.log_notification(order_id, email_type, recipient, subject, SENT)
        return True
