# seed.py
from decimal import Decimal

from sqlalchemy import select

from storefront import config
from storefront.db import Base, make_engine, make_session_factory
import storefront.models  # important: registers every model
from storefront.models.coupon import Coupon
from storefront.models.order import Order, OrderItem


COUPONS = [
    ("SAVE10", "percent", Decimal("10")),
    ("FLAT100", "flat", Decimal("100")),
]


def run_seed():
    engine = make_engine(config.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    db = make_session_factory(engine)()
    try:
        # --- 1. Coupons ---
        for code, kind, value in COUPONS:
            exists = db.execute(select(Coupon).where(Coupon.code == code)).scalars().first()
            if exists:
                print(f"ℹ️ Coupon '{code}' already exists")
                continue
            db.add(Coupon(code=code, type=kind, value=value, active=True))
            db.commit()
            print(f"✅ Coupon created: {code} ({kind} {value})")

        # --- 2. A pending order to play with in the admin console ---
        order = Order(
            external_order_id="seed-order-1",
            customer_name="Test Customer",
            customer_phone="919999999999",
            subtotal_amount=Decimal("500.00"),
            shipping_cost=Decimal("50.00"),
            discount_amount=Decimal("50.00"),
            coupon_code="SAVE10",
            total_amount=Decimal("500.00"),
        )
        exists = db.execute(
            select(Order).where(Order.external_order_id == order.external_order_id)
        ).scalars().first()
        if exists:
            print(f"ℹ️ Order '{exists.id}' already exists")
        else:
            order.items.append(OrderItem(
                product_name="Sample product",
                qty=2,
                unit_price=Decimal("250.00"),
                line_total=Decimal("500.00"),
            ))
            db.add(order)
            db.commit()
            print(f"✅ Order created: {order.id}")
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
