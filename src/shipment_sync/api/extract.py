# src/shipment_sync/api/extract.py
"""
Pull typed fields out of heterogeneous Shiprocket JSON.

The same logical field shows up at different paths depending on endpoint and
API version: on the root, under `data`, under `data[0]`, under `data.data`, or
under `tracking_data`. Each field is configured with an ordered list of
candidate paths and the first present, non-blank value wins.

Nothing in here raises on a missing or oddly-shaped node; absence is `None`,
which callers treat as "keep what is stored".
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Callable, Iterable, Iterator, Optional, Sequence, Tuple, Union

from shipment_sync.models import CarrierIds, ShipmentFacts

Segment = Union[str, int]


class JsonPath:
    """Dotted path over JSON values; purely numeric segments index lists.

    `JsonPath.parse("tracking_data.shipment_track.0.awb")` walks
    response["tracking_data"]["shipment_track"][0]["awb"].
    """

    __slots__ = ("segments", "text")

    def __init__(self, segments: Tuple[Segment, ...], text: str) -> None:
        self.segments = segments
        self.text = text

    @staticmethod
    @lru_cache(maxsize=512)
    def parse(text: str) -> "JsonPath":
        segments: list[Segment] = []
        for part in text.split("."):
            if not part:
                raise ValueError(f"Empty segment in path {text!r}")
            segments.append(int(part) if part.isdigit() else part)
        return JsonPath(tuple(segments), text)

    def evaluate(self, doc: Any) -> Any:
        node = doc
        for seg in self.segments:
            if node is None:
                return None
            if isinstance(seg, int):
                if isinstance(node, list) and -len(node) <= seg < len(node):
                    node = node[seg]
                elif isinstance(node, dict):
                    node = node.get(str(seg))
                else:
                    return None
            else:
                node = node.get(seg) if isinstance(node, dict) else None
        return node

    def __repr__(self) -> str:
        return f"JsonPath({self.text!r})"


# --- Candidate paths, highest priority first --------------------------------

CARRIER_ORDER_ID_PATHS: Tuple[str, ...] = (
    "order_id", "orderId",
    "data.order_id", "data.orderId",
    "data.0.order_id", "data.0.orderId",
    "data.data.order_id", "data.data.orderId",
)

CARRIER_SHIPMENT_ID_PATHS: Tuple[str, ...] = (
    "shipment_id", "shipmentId",
    "data.shipment_id", "data.shipmentId",
    "data.0.shipment_id", "data.0.shipmentId",
    "shipment.shipment_id", "shipment.id",
    "shipment_details.shipment_id", "shipment_details.id",
    "data.shipment.shipment_id", "data.shipment.id",
    "data.data.shipment_id", "data.data.shipmentId",
)

AWB_PATHS: Tuple[str, ...] = (
    "awb", "awb_code", "awbCode",
    "data.awb", "data.awb_code", "data.awbCode",
    "data.0.awb", "data.0.awb_code", "data.0.awbCode",
    "data.data.awb", "data.data.awb_code",
    "response.data.awb_code",
    "data.shipments.awb", "data.shipments.0.awb",
    "tracking_data.awb", "tracking_data.awb_code",
    "tracking_data.shipment_track.0.awb", "tracking_data.shipment_track.0.awb_code",
)

COURIER_NAME_PATHS: Tuple[str, ...] = (
    "courier_name", "courierName", "courier_company_name",
    "data.courier_name", "data.courier_company_name",
    "data.0.courier_name", "data.0.courier_company_name",
    "data.data.courier_name",
    "response.data.courier_name",
    "data.shipments.courier", "data.shipments.0.courier",
    "tracking_data.courier_name",
    "tracking_data.shipment_track.0.courier_name",
    "tracking_data.shipment_track.0.courier_company_name",
)

COURIER_ID_PATHS: Tuple[str, ...] = (
    "courier_company_id", "courierCompanyId", "courier_id", "courierId",
    "data.courier_company_id", "data.courier_id",
    "data.0.courier_company_id", "data.0.courier_id",
    "data.data.courier_company_id",
    "response.data.courier_company_id",
)

# Show endpoints put a summary status on the root.
STATUS_PATHS: Tuple[str, ...] = (
    "status", "current_status",
    "data.status", "data.0.status",
    "tracking_data.shipment_status",
    "tracking_data.shipment_track.0.current_status",
)

# The AWB tracking endpoint nests its status under tracking_data.
TRACK_STATUS_PATHS: Tuple[str, ...] = (
    "tracking_data.shipment_status",
    "tracking_data.shipment_track.0.current_status",
    "current_status",
    "0.current_status",
)

TRACKING_URL_PATHS: Tuple[str, ...] = (
    "tracking_url", "trackingUrl",
    "tracking_data.track_url",
    "data.tracking_url", "data.0.tracking_url",
    "0.track_url",
)

LABEL_URL_PATHS: Tuple[str, ...] = (
    "label_url", "label_created", "labelUrl",
    "data.label_url", "response.label_url",
)

MESSAGE_PATHS: Tuple[str, ...] = (
    "message", "data.message", "error.message", "response.message",
)


# --- Core ----------------------------------------------------------------------

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    # containers and booleans are never field values
    return isinstance(value, (dict, list, bool))


def _as_text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def first_non_empty(*values: Any) -> Any:
    for v in values:
        if not _is_blank(v):
            return v
    return None


def extract(
    response: Any,
    candidate_paths: Sequence[str],
    *,
    accept: Optional[Callable[[str], bool]] = None,
) -> Optional[str]:
    """First present, non-blank value over `candidate_paths`, as text.

    `accept` can reject values that are present but unusable (e.g. a numeric
    flag where a URL was expected); rejected values fall through to the next
    candidate.
    """
    for text in candidate_paths:
        value = JsonPath.parse(text).evaluate(response)
        if _is_blank(value):
            continue
        out = _as_text(value)
        if accept is not None and not accept(out):
            continue
        return out
    return None


def _looks_like_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


# --- Field groups ----------------------------------------------------------------

def extract_carrier_ids(response: Any) -> CarrierIds:
    return CarrierIds(
        order_id=extract(response, CARRIER_ORDER_ID_PATHS),
        shipment_id=extract(response, CARRIER_SHIPMENT_ID_PATHS),
    )


def extract_facts(response: Any, *, status_paths: Sequence[str] = STATUS_PATHS) -> ShipmentFacts:
    """AWB, courier, status and tracking URL; each element independently."""
    return ShipmentFacts(
        awb=extract(response, AWB_PATHS),
        courier_name=extract(response, COURIER_NAME_PATHS),
        courier_id=extract(response, COURIER_ID_PATHS),
        status=extract(response, status_paths),
        tracking_url=extract(response, TRACKING_URL_PATHS),
    )


def extract_label_url(response: Any) -> Optional[str]:
    return extract(response, LABEL_URL_PATHS, accept=_looks_like_url)


def extract_message(response: Any) -> Optional[str]:
    if isinstance(response, str):
        return response.strip() or None
    return extract(response, MESSAGE_PATHS)


def extract_pickup_locations(response: Any) -> list[str]:
    """Pickup location names the carrier lists when it rejects ours."""
    for text in ("data.data.data", "data.data", "data"):
        node = JsonPath.parse(text).evaluate(response)
        if isinstance(node, list):
            names = [
                item.get("pickup_location").strip()
                for item in node
                if isinstance(item, dict)
                and isinstance(item.get("pickup_location"), str)
                and item.get("pickup_location").strip()
            ]
            if names:
                return names
    return []


def stored_documents(raw: Any) -> Iterator[Any]:
    """Every carrier document held in a stored `raw_response`.

    Sync stores {"synced_from": ..., "response": ...} and failed calls store
    {"error": ..., "previous": ...}; both wrap an earlier carrier body.
    """
    seen: list[int] = []
    stack = [raw]
    while stack:
        doc = stack.pop(0)
        if doc is None or id(doc) in seen:
            continue
        seen.append(id(doc))
        yield doc
        if isinstance(doc, dict):
            for key in ("response", "previous"):
                if key in doc:
                    stack.append(doc[key])
            err = doc.get("error")
            if isinstance(err, dict) and "body" in err:
                stack.append(err["body"])


def messages_in(raw: Any) -> Iterable[str]:
    for doc in stored_documents(raw):
        msg = extract_message(doc)
        if msg:
            yield msg
