# src/shipment_sync/service.py
"""
Route-facing entry points: role checks, then the lifecycle/reconciler call.

The HTTP layer (not part of this package) maps `ShipmentError.http_status`
and `to_payload(admin=...)` onto its response.
"""
from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy.orm import Session

from shipment_sync.api.auth import token_provider_from_env
from shipment_sync.api.shiprocket import CarrierClient, ShiprocketClient, ShiprocketConfig
from shipment_sync.config.env import ship_defaults
from shipment_sync.errors import ForbiddenError, NotFoundError, ShipmentError, UnauthorizedError
from shipment_sync.io.store import ShipmentStore
from shipment_sync.models import EnvCfg, ShipmentResult, SyncOutcome
from shipment_sync.pipelines.lifecycle import ShipmentLifecycle
from shipment_sync.pipelines.notifier import Mailer, NotificationGate, SmtpMailer
from shipment_sync.pipelines.reconciler import Reconciler
from shipment_sync.utils.locks import KeyedLock

MUTATE_ROLES: FrozenSet[str] = frozenset({"admin", "manager"})
READ_ROLES: FrozenSet[str] = MUTATE_ROLES | {"staff"}


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as resolved by the route layer."""
    user_id: Optional[str] = None
    role: Optional[str] = None


def require_role(actor: Optional[Actor], allowed: FrozenSet[str]) -> Actor:
    if actor is None or not actor.role:
        raise UnauthorizedError("Unauthorized")
    if actor.role.strip().lower() not in allowed:
        raise ForbiddenError("Forbidden")
    return actor


def error_response(err: ShipmentError, *, admin: bool = False) -> Tuple[int, Dict[str, Any]]:
    """(http status, body) for a domain error."""
    return err.http_status, err.to_payload(admin=admin)


class ShipmentService:
    def __init__(
        self,
        lifecycle: ShipmentLifecycle,
        reconciler: Reconciler,
        *,
        sync_secret: str = "",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.lifecycle = lifecycle
        self.reconciler = reconciler
        self.store = lifecycle.store
        self.sync_secret = sync_secret
        self.logger = logger or logging.getLogger("shipment_sync.service")

    # mutations: admin/manager

    def create(self, actor: Optional[Actor], order_id: int) -> ShipmentResult:
        require_role(actor, MUTATE_ROLES)
        return self.lifecycle.create(order_id)

    def assign_awb(self, actor: Optional[Actor], order_id: int, courier_id: Optional[Any] = None) -> ShipmentResult:
        require_role(actor, MUTATE_ROLES)
        return self.lifecycle.assign_awb(order_id, courier_id)

    def generate_label(self, actor: Optional[Actor], order_id: int) -> ShipmentResult:
        require_role(actor, MUTATE_ROLES)
        return self.lifecycle.generate_label(order_id)

    def cancel(self, actor: Optional[Actor], order_id: int) -> ShipmentResult:
        require_role(actor, MUTATE_ROLES)
        return self.lifecycle.cancel(order_id)

    # refreshes and reads: staff too

    def track(self, actor: Optional[Actor], order_id: int) -> ShipmentResult:
        require_role(actor, READ_ROLES)
        return self.lifecycle.track(order_id)

    def sync(self, actor: Optional[Actor], order_id: int) -> ShipmentResult:
        require_role(actor, READ_ROLES)
        return self.reconciler.sync(order_id)

    def show(self, actor: Optional[Actor], order_id: int) -> Dict[str, Any]:
        require_role(actor, READ_ROLES)
        shipment = self.store.get_shipment(order_id)
        if shipment is None:
            raise NotFoundError("Shipment not found")
        return shipment.admin_view()

    def public_status(self, order_id: int) -> Dict[str, Any]:
        """Customer-facing view; ownership of the order is checked by the caller."""
        shipment = self.store.get_shipment(order_id)
        if shipment is None:
            raise NotFoundError("Shipment not found")
        return shipment.public_view()

    # batch: the cron secret, or a role (staff may sync, delivery tracking is admin/manager)

    def _authorize_batch(self, actor: Optional[Actor], secret: Optional[str],
                         allowed: FrozenSet[str]) -> None:
        if secret and self.sync_secret and hmac.compare_digest(secret, self.sync_secret):
            return
        if actor is None and secret:
            raise UnauthorizedError("Unauthorized")
        require_role(actor, allowed)

    def sync_batch(self, actor: Optional[Actor] = None, limit: Any = None, *,
                   secret: Optional[str] = None) -> List[SyncOutcome]:
        self._authorize_batch(actor, secret, READ_ROLES)
        return self.reconciler.sync_batch(limit)

    def track_batch(self, actor: Optional[Actor] = None, limit: Any = None, *,
                    secret: Optional[str] = None) -> List[SyncOutcome]:
        self._authorize_batch(actor, secret, MUTATE_ROLES)
        return self.reconciler.track_batch(limit)


def build_client(cfg: EnvCfg) -> ShiprocketClient:
    return ShiprocketClient(token_provider_from_env(cfg), ShiprocketConfig(base_url=cfg.SHIPROCKET_BASE_URL))


def build_service(
    cfg: EnvCfg,
    session: Session,
    *,
    client: Optional[CarrierClient] = None,
    mailer: Optional[Mailer] = None,
    locks: Optional[KeyedLock] = None,
) -> ShipmentService:
    """Wire store, carrier client, mailer and lifecycle from settings."""
    store = ShipmentStore(session)
    gate = NotificationGate(mailer or SmtpMailer(cfg), store)
    defaults = ship_defaults(cfg) if cfg.SHIPROCKET_PICKUP_LOCATION else None
    lifecycle = ShipmentLifecycle(
        store,
        client if client is not None else build_client(cfg),
        gate,
        defaults,
        locks=locks,
    )
    return ShipmentService(lifecycle, Reconciler(lifecycle), sync_secret=cfg.SHIPROCKET_SYNC_SECRET)
