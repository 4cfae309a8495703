# src/shipment_sync/pipelines/lifecycle.py
"""
Shipment state machine: Create, AssignAWB, GenerateLabel, Cancel, Track.

Each operation is one unit of work for one order: read the row, make at most
one carrier call, write the row. Operations on the same order are serialized
by a per-order lock.

Domain errors (NotFound, Conflict, Precondition) are raised before any carrier
call. Carrier failures are recorded on the row (`raw_response`) before they
propagate so Sync can mine them later.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError

from shipment_sync.api.extract import (
    TRACK_STATUS_PATHS,
    extract_carrier_ids,
    extract_facts,
    extract_label_url,
    extract_message,
    extract_pickup_locations,
    first_non_empty,
)
from shipment_sync.api.shiprocket import (
    ASSIGN_AWB_PATH,
    CANCEL_ORDER_PATH,
    CREATE_ORDER_PATH,
    GENERATE_LABEL_PATH,
    CarrierClient,
    track_awb_path,
)
from shipment_sync.errors import (
    CarrierError,
    ConflictError,
    NotFoundError,
    PreconditionError,
)
from shipment_sync.io.store import ShipmentStore
from shipment_sync.models import PROVIDER, Shipment, ShipDefaults, ShipmentResult
from shipment_sync.rules.salvage import salvage_awb, salvage_awb_from_error
from shipment_sync.rules.status_mapper import normalize_status
from shipment_sync.rules.transitions import (
    AWB_ASSIGNED,
    CANCELLED,
    CREATED,
    ERROR,
    LABEL_GENERATED,
    advance,
    is_cancelled,
    observed,
    order_is_terminal,
)
from shipment_sync.utils.locks import KeyedLock

from .notifier import NotificationGate
from .payload import build_order_payload

PICKUP_HINT_DEFAULT = "Check SHIPROCKET_PICKUP_LOCATION (must exactly match a Shiprocket pickup_location)."


def failure_record(err: CarrierError, prior: Any) -> dict:
    """`raw_response` value for a failed call; keeps the last good body as `previous`."""
    if isinstance(prior, dict) and set(prior) == {"error", "previous"}:
        prior = prior["previous"]
    return {"error": err.envelope(), "previous": prior}


def carrier_int(value: Any) -> Any:
    """Carrier ids are numeric on the wire; keep anything else verbatim."""
    s = str(value).strip()
    return int(s) if s.isdigit() else s


def _can_retry_create(shipment: Shipment) -> bool:
    """A row the carrier never confirmed (no shipment id, no AWB) may be created again."""
    if is_cancelled(shipment.status):
        return False
    return not shipment.carrier_shipment_id and not shipment.awb


class ShipmentLifecycle:
    def __init__(
        self,
        store: ShipmentStore,
        client: CarrierClient,
        gate: NotificationGate,
        defaults: Optional[ShipDefaults] = None,
        *,
        locks: Optional[KeyedLock] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.client = client
        self.gate = gate
        self.defaults = defaults
        self.locks = locks or KeyedLock()
        self.logger = logger or logging.getLogger("shipment_sync.lifecycle")

    # --- helpers -----------------------------------------------------------------

    def require_shipment(self, order_id: int) -> Shipment:
        shipment = self.store.get_shipment(order_id)
        if shipment is None:
            raise NotFoundError("Shipment not found", details={"order_id": order_id})
        return shipment

    def record_failure(self, shipment: Shipment, err: CarrierError) -> None:
        self.logger.warning("Carrier call failed for order %s: %s", shipment.order_id, err)
        self.store.update_shipment(shipment, raw_response=failure_record(err, shipment.raw_response))

    def _result(self, shipment: Shipment, carrier: Any = None, **kw: Any) -> ShipmentResult:
        return ShipmentResult(shipment=shipment.admin_view(), carrier=carrier, **kw)

    # --- Create --------------------------------------------------------------------

    def create(self, order_id: int) -> ShipmentResult:
        with self.locks.hold(order_id):
            existing = self.store.get_shipment(order_id)
            retry = existing is not None and _can_retry_create(existing)
            if existing is not None and not retry:
                raise ConflictError(
                    "Shipment already exists for this order",
                    details={"shipment_id": existing.id, "status": existing.status},
                )

            order = self.store.get_order(order_id)
            if order is None:
                raise NotFoundError("Order not found", details={"order_id": order_id})
            if self.defaults is None:
                raise PreconditionError("Missing SHIPROCKET_PICKUP_LOCATION")

            payload = build_order_payload(order, self.defaults)
            try:
                response = self.client.call(CREATE_ORDER_PATH, "POST", payload)
            except CarrierError as err:
                # a fresh create persists nothing; a retried row keeps the evidence
                if retry:
                    self.record_failure(existing, err)
                raise

            ids = extract_carrier_ids(response)
            fields = dict(
                status=CREATED,
                pickup_location=self.defaults.pickup_location,
                request_payload=payload,
                raw_response=response,
            )

            if retry:
                fields.update(
                    carrier_order_id=ids.order_id or existing.carrier_order_id,
                    carrier_shipment_id=ids.shipment_id or existing.carrier_shipment_id,
                )
                if not ids.any:
                    fields["status"] = ERROR
                shipment = self.store.update_shipment(existing, **fields)
            else:
                try:
                    shipment = self.store.insert_shipment(
                        order_id=order.id,
                        provider=PROVIDER,
                        carrier_order_id=ids.order_id,
                        carrier_shipment_id=ids.shipment_id,
                        **fields,
                    )
                except IntegrityError as ex:
                    # lost a race with a create in another process
                    self.store.rollback()
                    raise ConflictError("Shipment already exists for this order") from ex

            if ids.any:
                self.logger.info("Shipment created for order %s (carrier order=%s shipment=%s)",
                                 order_id, ids.order_id, ids.shipment_id)
                return self._result(shipment, response)

            message = extract_message(response) or "Shiprocket did not return order/shipment ids"
            locations = extract_pickup_locations(response)
            hint = (f"Set SHIPROCKET_PICKUP_LOCATION to one of: {', '.join(locations)}"
                    if locations else PICKUP_HINT_DEFAULT)
            self.logger.warning("Create for order %s returned no carrier ids: %s", order_id, message)
            return self._result(
                shipment, response, note=message,
                extra={
                    "hint": hint,
                    "pickup_locations": locations,
                    "attempted_pickup_location": self.defaults.pickup_location,
                },
            )

    # --- AssignAWB -------------------------------------------------------------------

    def assign_awb(self, order_id: int, courier_id: Optional[Any] = None) -> ShipmentResult:
        with self.locks.hold(order_id):
            shipment = self.require_shipment(order_id)
            if is_cancelled(shipment.status):
                raise PreconditionError("Cannot assign AWB to a cancelled shipment")
            if not shipment.carrier_shipment_id:
                raise PreconditionError("Missing carrier shipment id")

            prev_awb = shipment.awb
            requested_courier = str(courier_id).strip() if courier_id not in (None, "") else None
            body: dict = {"shipment_id": carrier_int(shipment.carrier_shipment_id)}
            if requested_courier:
                body["courier_id"] = carrier_int(requested_courier)

            salvaged = False
            try:
                response: Any = self.client.call(ASSIGN_AWB_PATH, "POST", body)
            except CarrierError as err:
                awb = salvage_awb_from_error(err)
                if not awb:
                    self.record_failure(shipment, err)
                    raise
                self.logger.info("AssignAWB for order %s refused but carrier holds AWB %s", order_id, awb)
                response = err.payload if err.payload is not None else err.body
                salvaged = True
                raw = failure_record(err, shipment.raw_response)
                courier_name = None
                extracted_courier = None
            else:
                facts = extract_facts(response)
                awb = facts.awb
                if not awb:
                    awb = salvage_awb(extract_message(response))
                    salvaged = awb is not None
                if not awb:
                    self.store.update_shipment(shipment, raw_response=response)
                    raise CarrierError(
                        "Shiprocket did not return an AWB",
                        body=json.dumps(response, default=str),
                        path=ASSIGN_AWB_PATH,
                    )
                raw = response
                courier_name = facts.courier_name
                extracted_courier = facts.courier_id

            # a salvaged AWB never replaces a known one; a fresh assignment does
            new_awb = (shipment.awb or awb) if salvaged else awb
            # the first AWB outranks any pre-AWB status the carrier narrated
            status = AWB_ASSIGNED if not prev_awb else advance(shipment.status, AWB_ASSIGNED)

            shipment = self.store.update_shipment(
                shipment,
                awb=new_awb,
                courier_name=first_non_empty(courier_name, shipment.courier_name),
                courier_id=first_non_empty(requested_courier, extracted_courier, shipment.courier_id),
                status=status,
                raw_response=raw,
            )
            notified = self.gate.notify_awb_change(self.store.get_order(order_id), shipment, prev_awb)
            return self._result(shipment, response, salvaged=salvaged, notified=notified)

    # --- GenerateLabel -----------------------------------------------------------------

    def generate_label(self, order_id: int) -> ShipmentResult:
        with self.locks.hold(order_id):
            shipment = self.require_shipment(order_id)
            if is_cancelled(shipment.status):
                raise PreconditionError("Cannot generate label for a cancelled shipment")
            if not shipment.carrier_shipment_id:
                raise PreconditionError("Missing carrier shipment id")

            body = {"shipment_id": [carrier_int(shipment.carrier_shipment_id)]}
            try:
                response = self.client.call(GENERATE_LABEL_PATH, "POST", body)
            except CarrierError as err:
                self.record_failure(shipment, err)
                raise

            label_url = extract_label_url(response)
            if not label_url:
                self.logger.warning("Label response for order %s carried no label URL", order_id)
            shipment = self.store.update_shipment(
                shipment,
                label_url=label_url or shipment.label_url,
                status=advance(shipment.status, LABEL_GENERATED),
                raw_response=response,
            )
            return self._result(shipment, response, note=None if label_url else "Label URL not found in response")

    # --- Cancel --------------------------------------------------------------------------

    def cancel(self, order_id: int) -> ShipmentResult:
        with self.locks.hold(order_id):
            shipment = self.require_shipment(order_id)
            if is_cancelled(shipment.status):
                return self._result(shipment, note="Shipment already cancelled")

            key = shipment.carrier_order_id or shipment.carrier_shipment_id
            if not key:
                raise PreconditionError("No carrier order/shipment id to cancel")

            try:
                response = self.client.call(CANCEL_ORDER_PATH, "POST", {"ids": [str(key)]})
            except CarrierError as err:
                self.record_failure(shipment, err)
                raise

            shipment = self.store.update_shipment(shipment, status=CANCELLED, raw_response=response)
            order = self.store.get_order(order_id)
            if order is not None and not order_is_terminal(order.order_status):
                self.store.set_order_status(order, CANCELLED)
            self.logger.info("Shipment for order %s cancelled (carrier id %s)", order_id, key)

            notified = self.gate.notify_cancelled(order, shipment)
            return self._result(shipment, response, notified=notified)

    # --- Track ---------------------------------------------------------------------------

    def track(self, order_id: int) -> ShipmentResult:
        with self.locks.hold(order_id):
            shipment = self.require_shipment(order_id)
            if not shipment.awb:
                raise PreconditionError("Missing AWB (assign AWB first)")

            try:
                response = self.client.call(track_awb_path(shipment.awb), "GET")
            except CarrierError as err:
                self.record_failure(shipment, err)
                raise

            facts = extract_facts(response, status_paths=TRACK_STATUS_PATHS)
            shipment = self.store.update_shipment(
                shipment,
                status=observed(shipment.status, normalize_status(facts.status)),
                tracking_url=facts.tracking_url or shipment.tracking_url,
                courier_name=shipment.courier_name or facts.courier_name,
                raw_response=response,
            )
            return self._result(shipment, response)
