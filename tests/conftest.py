"""Pytest fixtures for storefront tests."""

import os

# before any storefront import: keep the module-level app off PostgreSQL
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_API_TOKEN"] = ""
os.environ["ENV"] = "local"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from storefront.db import Base, make_engine, make_session_factory
import storefront.models  # noqa: F401
from storefront.models.coupon import Coupon
from storefront.models.order import Order, OrderItem


class RecordingNotifier:
    """Stands in for the WhatsApp notifier."""

    def __init__(self):
        self.sent = []

    def notify_order_status_changed(self, order):
        self.sent.append((order.id, order.status))
        return True


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'shop.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(session_factory, notifier):
    from storefront.main import create_app

    return TestClient(create_app(session_factory=session_factory, notifier=notifier, admin_token=""))


@pytest.fixture
def make_order(db):
    """Insert an order and return its id."""

    def _make(order_id="Y", status="PENDING", **fields):
        fields.setdefault("customer_name", "Asha")
        fields.setdefault("customer_phone", "919800000000")
        fields.setdefault("subtotal_amount", Decimal("500.00"))
        fields.setdefault("shipping_cost", Decimal("50.00"))
        fields.setdefault("total_amount", Decimal("550.00"))
        order = Order(id=order_id, status=status, **fields)
        order.items.append(OrderItem(
            product_id="p-1",
            product_name="Wedding card",
            qty=2,
            unit_price=Decimal("250.00"),
            line_total=Decimal("500.00"),
        ))
        db.add(order)
        db.commit()
        return order.id

    return _make


@pytest.fixture
def make_coupon(db):
    def _make(code, type="percent", value="10", active=True):
        coupon = Coupon(code=code, type=type, value=Decimal(value), active=active)
        db.add(coupon)
        db.commit()
        return coupon

    return _make
