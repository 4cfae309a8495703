# src/shipment_sync/pipelines/reconciler.py
"""
Sync: refresh a shipment from whichever carrier endpoint currently answers.

Merge policy for a sync result:
  - awb / courier_name / courier_id / tracking_url: keep what is stored; a
    fresh value only fills a blank
  - status: the freshly observed (normalized) status wins, except that a
    cancelled shipment stays cancelled
  - created + newly discovered AWB -> awb_assigned
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from shipment_sync.api.extract import (
    extract_carrier_ids,
    extract_facts,
    messages_in,
    stored_documents,
)
from shipment_sync.api.shiprocket import sync_endpoints
from shipment_sync.errors import CarrierError, NotFoundError, PreconditionError
from shipment_sync.models import Shipment, ShipmentResult, SyncOutcome
from shipment_sync.rules.salvage import is_invalid_pickup_location
from shipment_sync.rules.status_mapper import normalize_status
from shipment_sync.rules.transitions import AWB_ASSIGNED, CREATED, ERROR, is_cancelled, observed

from .lifecycle import ShipmentLifecycle

DEFAULT_BATCH_LIMIT = 20
MAX_BATCH_LIMIT = 50

INVALID_PICKUP_NOTE = (
    "Shipment creation failed: invalid pickup location. "
    "Fix SHIPROCKET_PICKUP_LOCATION and create the shipment again."
)


def clamp_limit(limit: Any) -> int:
    """Batch size within 1..50; anything unparsable means the default."""
    try:
        n = int(limit)
    except (TypeError, ValueError):
        return DEFAULT_BATCH_LIMIT
    return max(1, min(MAX_BATCH_LIMIT, n))


class Reconciler:
    """Single and batch sync on top of a `ShipmentLifecycle`.

    Shares the lifecycle's store, carrier client, notification gate and
    per-order locks, so a sync never interleaves with an AssignAWB for the
    same order.
    """

    def __init__(self, lifecycle: ShipmentLifecycle, *, logger: Optional[logging.Logger] = None) -> None:
        self.lifecycle = lifecycle
        self.store = lifecycle.store
        self.client = lifecycle.client
        self.gate = lifecycle.gate
        self.locks = lifecycle.locks
        self.logger = logger or logging.getLogger("shipment_sync.reconciler")

    # --- probing -----------------------------------------------------------------

    def try_endpoints(self, endpoints: Sequence[str]) -> Tuple[str, Any]:
        """First endpoint that answers, with its response; else the last error."""
        last_err: Optional[CarrierError] = None
        for path in endpoints:
            try:
                return path, self.client.call(path, "GET")
            except CarrierError as err:
                self.logger.debug("Sync probe %s failed: %s", path, err)
                last_err = err
        if last_err is None:
            raise PreconditionError("No carrier endpoints to probe")
        raise last_err

    # --- self-repair -------------------------------------------------------------

    def repair_ids(self, shipment: Shipment) -> bool:
        """Fill missing carrier ids from the stored raw response. True if any were found."""
        if shipment.carrier_order_id and shipment.carrier_shipment_id:
            return False

        order_id = shipment.carrier_order_id
        shipment_id = shipment.carrier_shipment_id
        for doc in stored_documents(shipment.raw_response):
            ids = extract_carrier_ids(doc)
            order_id = order_id or ids.order_id
            shipment_id = shipment_id or ids.shipment_id
            if order_id and shipment_id:
                break

        if order_id == shipment.carrier_order_id and shipment_id == shipment.carrier_shipment_id:
            return False
        self.logger.info("Recovered carrier ids for order %s from stored response (order=%s shipment=%s)",
                         shipment.order_id, order_id, shipment_id)
        self.store.update_shipment(shipment, carrier_order_id=order_id, carrier_shipment_id=shipment_id)
        return True

    # --- single --------------------------------------------------------------------

    def sync(self, order_id: int) -> ShipmentResult:
        with self.locks.hold(order_id):
            shipment = self.store.get_shipment(order_id)
            if shipment is None:
                raise NotFoundError("Shipment not found", details={"order_id": order_id})

            repaired = self.repair_ids(shipment)

            if not (shipment.carrier_order_id or shipment.carrier_shipment_id):
                if is_invalid_pickup_location(messages_in(shipment.raw_response)):
                    if not is_cancelled(shipment.status) and shipment.status != ERROR:
                        shipment = self.store.update_shipment(shipment, status=ERROR)
                    self.logger.warning("Order %s: creation broken by pickup location; marked error", order_id)
                    return ShipmentResult(shipment=shipment.admin_view(), note=INVALID_PICKUP_NOTE)
                raise PreconditionError("Missing carrier order/shipment id")

            endpoints = sync_endpoints(
                shipment_id=shipment.carrier_shipment_id,
                order_id=shipment.carrier_order_id,
            )
            prev_awb = shipment.awb
            try:
                endpoint, response = self.try_endpoints(endpoints)
            except CarrierError as err:
                self.lifecycle.record_failure(shipment, err)
                raise

            facts = extract_facts(response)
            new_awb = shipment.awb or facts.awb
            status = observed(shipment.status, normalize_status(facts.status))
            if shipment.status == CREATED and not prev_awb and new_awb:
                status = AWB_ASSIGNED

            shipment = self.store.update_shipment(
                shipment,
                awb=new_awb,
                courier_name=shipment.courier_name or facts.courier_name,
                courier_id=shipment.courier_id or facts.courier_id,
                tracking_url=shipment.tracking_url or facts.tracking_url,
                status=status,
                raw_response={"synced_from": endpoint, "response": response},
            )
            self.logger.info("Order %s synced from %s (awb=%s status=%s)", order_id, endpoint, new_awb, status)

            notified = self.gate.notify_awb_change(self.store.get_order(order_id), shipment, prev_awb)
            return ShipmentResult(
                shipment=shipment.admin_view(),
                carrier=response,
                synced_from=endpoint,
                notified=notified,
                extra={"repaired_ids": repaired},
            )

    # --- batch ---------------------------------------------------------------------

    def _run_batch(self, keys: Iterable[Tuple[int, int]], op: Callable[[int], ShipmentResult],
                   label: str) -> List[SyncOutcome]:
        outcomes: List[SyncOutcome] = []
        for order_id, shipment_id in keys:
            try:
                result = op(order_id)
            except Exception as ex:
                self.store.rollback()
                self.logger.exception("%s failed for order %s", label, order_id)
                outcomes.append(SyncOutcome(order_id=order_id, shipment_id=shipment_id, error=str(ex)))
                continue
            row = result.shipment
            outcomes.append(SyncOutcome(
                order_id=order_id,
                shipment_id=shipment_id,
                awb=row.get("awb"),
                status=row.get("status"),
                synced_from=result.synced_from,
                notified=result.notified,
            ))
        ok = sum(1 for o in outcomes if o.ok)
        self.logger.info("%s batch done: %d ok, %d failed", label, ok, len(outcomes) - ok)
        return outcomes

    def sync_batch(self, limit: Any = DEFAULT_BATCH_LIMIT) -> List[SyncOutcome]:
        """Sync shipments still missing an AWB, oldest update first, one at a time."""
        rows = self.store.select_stale_unassigned(clamp_limit(limit))
        # ids captured up front: a rollback expires the ORM rows
        keys = [(s.order_id, s.id) for s in rows]
        return self._run_batch(keys, self.sync, "Sync")

    def track_batch(self, limit: Any = DEFAULT_BATCH_LIMIT) -> List[SyncOutcome]:
        """Track AWB-bearing shipments of paid orders, oldest update first."""
        rows = self.store.select_tracking_candidates(clamp_limit(limit))
        keys = [(s.order_id, s.id) for s in rows]
        return self._run_batch(keys, self.lifecycle.track, "Track")
