# tests/conftest.py
from __future__ import annotations

from datetime import datetime
from typing import List, Tuple

import pytest

from shipment_sync.api.client import ReplayShiprocketClient
from shipment_sync.io.db import init_models, make_engine, make_session_factory
from shipment_sync.io.store import ShipmentStore
from shipment_sync.models import EnvCfg, Order, ShipDefaults
from shipment_sync.pipelines.lifecycle import ShipmentLifecycle
from shipment_sync.pipelines.notifier import NotificationGate
from shipment_sync.pipelines.reconciler import Reconciler

DEFAULTS = ShipDefaults(pickup_location="Primary", weight=0.3, length=18.0, breadth=10.0, height=3.0)

_ENV_KEYS = tuple(EnvCfg.__dataclass_fields__) + ("LOG_LEVEL",)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """No host settings leak in, and nothing a test loads from .env leaks out."""
    for key in _ENV_KEYS:
        monkeypatch.setenv(key, "placeholder")
        monkeypatch.delenv(key)


class RecordingMailer:
    def __init__(self) -> None:
        self.sent: List[Tuple[str, object]] = []
        self.fail_with: Exception | None = None

    def _record(self, kind: str, ctx: object) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((kind, ctx))

    def send_tracking_email(self, ctx) -> None:
        self._record("tracking", ctx)

    def send_cancellation_email(self, ctx) -> None:
        self._record("cancelled", ctx)

    @property
    def tracking_awbs(self) -> List[str]:
        return [ctx.awb for kind, ctx in self.sent if kind == "tracking"]


@pytest.fixture
def session():
    engine = make_engine("sqlite://")
    init_models(engine)
    s = make_session_factory(engine)()
    yield s
    s.close()
    engine.dispose()


@pytest.fixture
def store(session):
    return ShipmentStore(session)


@pytest.fixture
def carrier():
    return ReplayShiprocketClient()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def gate(mailer, store):
    return NotificationGate(mailer, store)


@pytest.fixture
def lifecycle(store, carrier, gate):
    return ShipmentLifecycle(store, carrier, gate, DEFAULTS)


@pytest.fixture
def reconciler(lifecycle):
    return Reconciler(lifecycle)


def order_fields(order_id: int = 42, **overrides) -> dict:
    fields = dict(
        id=order_id,
        order_number=f"ORD-{order_id}",
        customer_name="Asha Rao",
        customer_email="asha@example.com",
        customer_mobile="+91 98765 43210",
        product_name="Clear Case",
        phone_model="iPhone 15",
        quantity=1,
        unit_price=499.0,
        total_amount=548.0,
        shipping_cost=49.0,
        payment_status="paid",
        order_status="confirmed",
        customization_data=None,
        shipping_address_line1="12 MG Road",
        shipping_address_line2=None,
        shipping_city="Bengaluru",
        shipping_state="Karnataka",
        shipping_pincode="560001",
        created_at=datetime(2025, 1, 5, 10, 30, 0),
    )
    fields.update(overrides)
    return fields


@pytest.fixture
def make_order(session):
    def _make(order_id: int = 42, **overrides) -> Order:
        order = Order(**order_fields(order_id, **overrides))
        session.add(order)
        session.commit()
        return order
    return _make


@pytest.fixture
def make_shipment(store):
    def _make(order_id: int = 42, **fields):
        return store.insert_shipment(order_id=order_id, **fields)
    return _make


@pytest.fixture
def order_data():
    """Column values for an Order row, for tests that seed their own database."""
    return order_fields
