# storefront/models/coupon.py
from typing import Optional
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from storefront.db import Base, utcnow
from storefront.utils.enums import CouponType


def normalize_code(code) -> str:
    return str(code or "").strip().upper()


class Coupon(Base):
    __tablename__ = "coupons"
    __table_args__ = (CheckConstraint("value >= 0", name="ck_coupons_value_non_negative"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    # 'percent' | 'flat'; anything else evaluates to a zero discount
    type: Mapped[str] = mapped_column(String(16), default=CouponType.PERCENT.value)
    value: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    @validates("code")
    def _upper_code(self, key, code):
        return normalize_code(code)


class CouponRedemption(Base):
    """Log of a code being applied to a cart or order."""

    __tablename__ = "coupon_redemptions"

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(String(64), index=True)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    order_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


# one redemption per (code, order); NULL order ids (cart sessions) never collide
Index("ux_coupon_redemptions_code_order", CouponRedemption.code, CouponRedemption.order_id, unique=True)
