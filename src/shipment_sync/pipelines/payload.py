# src/shipment_sync/pipelines/payload.py
from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

from shipment_sync.models import Order, ShipDefaults
from shipment_sync.models.shipment import utcnow

PAYMENT_METHOD = "Prepaid"
BILLING_COUNTRY = "India"


def normalize_mobile(mobile: Optional[str]) -> str:
    """Digits only; keep the last 10 when a country code is included."""
    digits = re.sub(r"\D", "", str(mobile or ""))
    return digits[-10:] if len(digits) > 10 else digits


def _parse_customization(raw: Optional[str]) -> Optional[dict]:
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def _num(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class _SkuAllocator:
    """Hands out SKUs, suffixing repeats with -2, -3, ..."""

    def __init__(self) -> None:
        self._counts: Dict[str, int] = {}

    def take(self, base: str) -> str:
        n = self._counts.get(base, 0) + 1
        self._counts[base] = n
        return base if n == 1 else f"{base}-{n}"


def build_order_items(order: Order) -> List[dict]:
    """
    Carrier line items for `order`.

    Items come from `customization_data.items` when that is a non-empty list;
    otherwise a single item is built from the order's legacy product fields.
    """
    custom = _parse_customization(order.customization_data)
    items = custom.get("items") if custom else None
    if not isinstance(items, list) or not items:
        items = [{
            "productId": None,
            "productName": order.product_name,
            "phoneModel": order.phone_model,
            "quantity": order.quantity,
            "unitPrice": order.unit_price,
        }]

    skus = _SkuAllocator()
    out: List[dict] = []
    for index, it in enumerate(items):
        if not isinstance(it, dict):
            continue
        name = str(it.get("productName") or order.product_name or "Product")
        model = str(it.get("phoneModel") or order.phone_model or "")
        unit_price = it.get("unitPrice", it.get("price"))
        if unit_price is None:
            unit_price = order.unit_price

        default_sku = f"CASE-{it['productId']}" if it.get("productId") else f"CASE-{order.id}-{index + 1}"
        base_sku = str(it.get("sku") or "").strip() or default_sku

        out.append({
            "name": f"{name} ({model})" if model else name,
            "sku": skus.take(base_sku),
            "units": int(_num(it.get("quantity"), 1) or 1),
            "selling_price": _num(unit_price),
            "discount": 0,
            "tax": 0,
            "hsn": it.get("hsn") or "",
        })
    return out


def _order_date(order: Order) -> str:
    return (order.created_at or utcnow()).strftime("%Y-%m-%d %H:%M:%S")


def build_order_payload(order: Order, defaults: ShipDefaults) -> dict:
    """Ad-hoc order+shipment creation body."""
    shipping = _num(order.shipping_cost)
    return {
        "order_id": str(order.order_number or order.id),
        "order_date": _order_date(order),
        "pickup_location": defaults.pickup_location,

        "billing_customer_name": order.customer_name,
        "billing_last_name": "",
        "billing_address": order.shipping_address_line1,
        "billing_address_2": order.shipping_address_line2 or "",
        "billing_city": order.shipping_city,
        "billing_pincode": order.shipping_pincode,
        "billing_state": order.shipping_state,
        "billing_country": BILLING_COUNTRY,
        "billing_email": order.customer_email,
        "billing_phone": normalize_mobile(order.customer_mobile),
        "shipping_is_billing": True,

        "order_items": build_order_items(order),

        "payment_method": PAYMENT_METHOD,
        "shipping_charges": shipping,
        "giftwrap_charges": 0,
        "transaction_charges": 0,
        "total_discount": 0,
        "sub_total": _num(order.total_amount) - shipping,

        "length": defaults.length,
        "breadth": defaults.breadth,
        "height": defaults.height,
        "weight": defaults.weight,
    }
