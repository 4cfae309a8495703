import json
from datetime import datetime

from shipment_sync.models import Order, ShipDefaults
from shipment_sync.pipelines.payload import build_order_items, build_order_payload, normalize_mobile

DEFAULTS = ShipDefaults(pickup_location="Primary", weight=0.3, length=18.0, breadth=10.0, height=3.0)


def _order(**overrides) -> Order:
    fields = dict(
        id=42,
        order_number="ORD-42",
        customer_name="Asha Rao",
        customer_email="asha@example.com",
        customer_mobile="+91 98765-43210",
        product_name="Clear Case",
        phone_model="iPhone 15",
        quantity=1,
        unit_price=499.0,
        total_amount=548.0,
        shipping_cost=49.0,
        payment_status="paid",
        customization_data=None,
        shipping_address_line1="12 MG Road",
        shipping_address_line2=None,
        shipping_city="Bengaluru",
        shipping_state="Karnataka",
        shipping_pincode="560001",
        created_at=datetime(2025, 1, 5, 10, 30, 0),
    )
    fields.update(overrides)
    return Order(**fields)


def test_normalize_mobile_keeps_last_ten_digits():
    assert normalize_mobile("+91 98765-43210") == "9876543210"
    assert normalize_mobile("12345") == "12345"
    assert normalize_mobile(None) == ""


def test_legacy_single_item_fallback():
    items = build_order_items(_order())
    assert items == [{
        "name": "Clear Case (iPhone 15)",
        "sku": "CASE-42-1",
        "units": 1,
        "selling_price": 499.0,
        "discount": 0,
        "tax": 0,
        "hsn": "",
    }]


def test_structured_items_with_duplicate_skus_get_suffixes():
    custom = {"items": [
        {"productId": 5, "productName": "Matte Case", "phoneModel": "Pixel 8", "quantity": 2, "unitPrice": 300},
        {"productId": 5, "productName": "Matte Case", "phoneModel": "Pixel 9", "price": 320},
        {"sku": "GIFT-BOX", "productName": "Gift Box", "unitPrice": 0, "hsn": "4819"},
    ]}
    items = build_order_items(_order(customization_data=json.dumps(custom)))

    assert [i["sku"] for i in items] == ["CASE-5", "CASE-5-2", "GIFT-BOX"]
    assert [i["units"] for i in items] == [2, 1, 1]
    assert [i["selling_price"] for i in items] == [300.0, 320.0, 0.0]
    assert items[1]["name"] == "Matte Case (Pixel 9)"
    # falls back to the order's model when the item has none
    assert items[2]["name"] == "Gift Box (iPhone 15)"
    assert items[2]["hsn"] == "4819"


def test_unparsable_customization_uses_fallback():
    items = build_order_items(_order(customization_data="{not json"))
    assert len(items) == 1
    assert items[0]["sku"] == "CASE-42-1"


def test_empty_items_list_uses_fallback():
    items = build_order_items(_order(customization_data=json.dumps({"items": []})))
    assert items[0]["name"] == "Clear Case (iPhone 15)"


def test_payload_carries_order_and_defaults():
    payload = build_order_payload(_order(), DEFAULTS)

    assert payload["order_id"] == "ORD-42"
    assert payload["order_date"] == "2025-01-05 10:30:00"
    assert payload["pickup_location"] == "Primary"
    assert payload["billing_phone"] == "9876543210"
    assert payload["billing_address_2"] == ""
    assert payload["billing_country"] == "India"
    assert payload["shipping_is_billing"] is True
    assert payload["payment_method"] == "Prepaid"
    assert payload["shipping_charges"] == 49.0
    assert payload["sub_total"] == 499.0
    assert (payload["length"], payload["breadth"], payload["height"], payload["weight"]) == (18.0, 10.0, 3.0, 0.3)
    assert len(payload["order_items"]) == 1


def test_payload_order_id_falls_back_to_row_id():
    assert build_order_payload(_order(order_number=""), DEFAULTS)["order_id"] == "42"
