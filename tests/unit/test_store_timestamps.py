from datetime import datetime, timedelta, timezone

from shipment_sync.models.shipment import utcnow


def test_utcnow_is_naive_utc():
    now = utcnow()
    assert now.tzinfo is None
    assert abs(now - datetime.now(timezone.utc).replace(tzinfo=None)) < timedelta(seconds=5)


def test_update_bumps_updated_at_in_utc(store, make_order, make_shipment):
    order = make_order(42)
    shipment = make_shipment(42, updated_at=datetime(2025, 1, 1))

    before = utcnow()
    store.update_shipment(shipment, courier_name="Delhivery")
    store.set_order_status(order, "cancelled")

    assert shipment.updated_at.tzinfo is None
    assert shipment.updated_at >= before
    assert order.updated_at >= before
    assert shipment.created_at <= shipment.updated_at
