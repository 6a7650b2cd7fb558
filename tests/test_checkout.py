"""Tests for placing orders from checkout."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from storefront.errors import InvalidCouponError, MissingFieldError, PersistenceError, ValidationError
from storefront.models.coupon import CouponRedemption
from storefront.models.order import MONEY_MAX, Order
from storefront.services import coupons as coupon_service
from storefront.services import orders as order_service

CARDS = [{"product_id": "p-1", "product_name": "Wedding card", "qty": 3, "unit_price": "33.33"}]


def count(session_factory, model):
    with session_factory() as s:
        return s.execute(select(func.count()).select_from(model)).scalar_one()


def redemptions_for(session_factory, order_id):
    with session_factory() as s:
        return s.execute(
            select(CouponRedemption).where(CouponRedemption.order_id == order_id)
        ).scalars().all()


class TestCreateOrder:
    def test_without_coupon(self, db, session_factory):
        order = order_service.create_order(db, CARDS, customer_name="Asha", shipping_cost="40")

        assert order.status == "PENDING"
        assert order.subtotal_amount == Decimal("99.99")
        assert order.discount_amount == 0
        assert order.coupon_code is None
        assert order.total_amount == Decimal("139.99")
        assert [(i.product_name, i.qty, i.line_total) for i in order.items] == [
            ("Wedding card", 3, Decimal("99.99")),
        ]
        assert count(session_factory, CouponRedemption) == 0

    def test_percent_coupon_is_rounded_to_cents(self, db, session_factory, make_coupon):
        make_coupon("SAVE10", "percent", "10")

        order = order_service.create_order(
            db, CARDS, shipping_cost=40, coupon_code="save10", session_id="sess-7",
        )

        # 10% of 99.99 is 9.999
        assert order.discount_amount == Decimal("10.00")
        assert order.coupon_code == "SAVE10"
        assert order.total_amount == order.subtotal_amount + order.shipping_cost - order.discount_amount
        assert order.total_amount == Decimal("129.99")

        rows = redemptions_for(session_factory, order.id)
        assert len(rows) == 1
        assert rows[0].code == "SAVE10"
        assert rows[0].subtotal == Decimal("99.99")
        assert rows[0].discount_amount == Decimal("10.00")
        assert rows[0].session_id == "sess-7"

    def test_flat_coupon_never_exceeds_subtotal(self, db, make_coupon):
        make_coupon("FLAT100", "flat", "100")
        items = [{"product_name": "Envelope", "qty": 4, "unit_price": 20}]

        order = order_service.create_order(db, items, shipping_cost=40, coupon_code="FLAT100")

        assert order.subtotal_amount == Decimal("80")
        assert order.discount_amount == Decimal("80")
        assert order.total_amount == Decimal("40")

    @pytest.mark.parametrize("stored_inactive", [False, True])
    def test_unusable_coupon_places_nothing(self, db, session_factory, make_coupon, stored_inactive):
        if stored_inactive:
            make_coupon("OLD50", "percent", "50", active=False)

        with pytest.raises(InvalidCouponError):
            order_service.create_order(db, CARDS, coupon_code="OLD50")

        assert count(session_factory, Order) == 0
        assert count(session_factory, CouponRedemption) == 0

    def test_repeated_external_id_returns_the_placed_order(self, db, session_factory, make_coupon):
        make_coupon("SAVE10")

        first = order_service.create_order(db, CARDS, coupon_code="SAVE10", external_order_id="cf_1")
        again = order_service.create_order(db, CARDS, coupon_code="SAVE10", external_order_id="cf_1")

        assert again.id == first.id
        assert count(session_factory, Order) == 1
        assert len(redemptions_for(session_factory, first.id)) == 1

    def test_items_required(self, db):
        with pytest.raises(MissingFieldError) as exc:
            order_service.create_order(db, [])
        assert str(exc.value) == "items is required"

    def test_bad_lines_rejected(self, db, session_factory):
        with pytest.raises(ValidationError):
            order_service.create_order(db, [{"product_name": "Card", "qty": 0, "unit_price": 5}])
        with pytest.raises(ValidationError) as exc:
            order_service.create_order(db, [{"product_name": "Card", "qty": 1, "unit_price": "five"}])
        assert str(exc.value) == "Unit price must be a number"
        assert count(session_factory, Order) == 0

    def test_total_beyond_column_range_rejected(self, db, session_factory):
        items = [{"product_name": "Card", "qty": 2, "unit_price": MONEY_MAX}]
        with pytest.raises(ValidationError) as exc:
            order_service.create_order(db, items)
        assert str(exc.value) == "Order total is too large"
        assert count(session_factory, Order) == 0

    def test_redemption_failure_keeps_the_order(self, db, session_factory, make_coupon, monkeypatch, caplog):
        make_coupon("SAVE10")

        def broken(*args, **kwargs):
            raise PersistenceError("Failed to record redemption")

        monkeypatch.setattr(coupon_service, "record_redemption", broken)

        with caplog.at_level("WARNING", logger="storefront.services.orders"):
            order = order_service.create_order(db, CARDS, coupon_code="SAVE10")

        assert order.status == "PENDING"
        assert count(session_factory, Order) == 1
        assert "redemption of SAVE10 was not logged" in caplog.text


class TestCreateOrderEndpoint:
    def test_create(self, client, make_coupon, db):
        make_coupon("SAVE10")

        response = client.post("/api/orders", json={
            "externalOrderId": "cf_order_9",
            "customerName": "Asha",
            "customerPhone": "919800000000",
            "items": [{"productId": "p-1", "productName": "Wedding card", "qty": 2, "unitPrice": 250}],
            "shippingCost": 50,
            "couponCode": "SAVE10",
            "sessionId": "sess-1",
        })
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "PENDING"
        assert data["subtotalAmount"] == 500
        assert data["discountAmount"] == 50
        assert data["totalAmount"] == 500
        assert data["couponCode"] == "SAVE10"
        assert data["items"][0]["lineTotal"] == 500

        rows = db.execute(select(CouponRedemption)).scalars().all()
        assert [(r.code, r.order_id) for r in rows] == [("SAVE10", data["id"])]

        detail = client.get(f"/api/orders/{data['id']}")
        assert detail.json()["totalAmount"] == 500

    def test_no_items_is_400(self, client):
        response = client.post("/api/orders", json={"customerName": "Asha"})
        assert response.status_code == 400
        assert response.json()["errorType"] == "MissingField"

    def test_invalid_coupon_is_400(self, client):
        response = client.post("/api/orders", json={
            "items": [{"productName": "Card", "qty": 1, "unitPrice": 10}],
            "couponCode": "NOPE",
        })
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid coupon", "errorType": "InvalidCoupon"}
        assert client.get("/api/orders").json() == []

    def test_client_cannot_set_totals(self, client):
        response = client.post("/api/orders", json={
            "items": [{"productName": "Card", "qty": 1, "unitPrice": 10}],
            "totalAmount": 1,
        })
        assert response.status_code == 400
        assert response.json()["errorType"] == "ValidationError"


class TestMoneyBounds:
    HUGE = 10000000000000

    def test_refund_amount_overflow_is_400(self, client, make_order):
        make_order("B1")
        response = client.post("/api/orders/refund", json={"orderId": "B1", "refundAmount": self.HUGE})
        assert response.status_code == 400
        assert response.json()["errorType"] == "ValidationError"
        assert client.get("/api/orders/B1").json()["status"] == "PENDING"

    def test_subtotal_overflow_is_400(self, client, make_coupon):
        make_coupon("SAVE10")
        response = client.post("/api/validate-coupon", json={"code": "SAVE10", "subtotal": self.HUGE})
        assert response.status_code == 400
        assert response.json()["errorType"] == "ValidationError"

    def test_unit_price_overflow_is_400(self, client):
        response = client.post("/api/orders", json={
            "items": [{"productName": "Card", "qty": 1, "unitPrice": self.HUGE}],
        })
        assert response.status_code == 400
        assert response.json()["errorType"] == "ValidationError"

    def test_largest_stored_amount_is_accepted(self, client, make_order):
        make_order("B2")
        response = client.post("/api/orders/refund", json={"orderId": "B2", "refundAmount": "9999999999.99"})
        assert response.status_code == 200
