import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.errors import (
    InvalidCouponError,
    MissingCodeError,
    PersistenceError,
    ValidationError,
)
from storefront.models.coupon import Coupon, CouponRedemption, normalize_code
from storefront.utils.enums import CouponType

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CURRENCY_SIGN = "₹"


def _to_decimal(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    return Decimal(str(x or 0))


def _plain(value: Decimal) -> str:
    """10.00 -> '10', 12.50 -> '12.5'"""
    text = format(_to_decimal(value), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


# ---------- EVALUATOR ----------

def evaluate(coupon, subtotal) -> Decimal:
    """Discount for ``coupon`` applied to ``subtotal``.

    Pure: reads only ``coupon.type`` and ``coupon.value``. The result is
    always within ``[0, subtotal]``. Callers reject inactive coupons first.
    """
    sub = _to_decimal(subtotal)
    if sub < ZERO:
        raise ValidationError("Subtotal must not be negative")

    value = _to_decimal(coupon.value)
    if coupon.type == CouponType.PERCENT.value:
        discount = min(sub, sub * value / Decimal(100))
    elif coupon.type == CouponType.FLAT.value:
        discount = min(sub, value)
    else:
        discount = ZERO

    return max(ZERO, discount)


def describe(coupon) -> str:
    if coupon.type == CouponType.PERCENT.value:
        return f"Applied {_plain(coupon.value)}% OFF"
    return f"Applied {CURRENCY_SIGN}{_plain(coupon.value)} OFF"


# ---------- LOOKUP / VALIDATE ----------

def find_active_coupon(db: Session, code: str) -> Optional[Coupon]:
    stmt = select(Coupon).where(Coupon.code == normalize_code(code), Coupon.active.is_(True))
    try:
        return db.execute(stmt).scalars().first()
    except SQLAlchemyError as e:
        logger.error("coupon lookup failed for %s: %s", code, e)
        raise PersistenceError("Failed to validate coupon", e) from e


def validate_coupon(db: Session, code: Optional[str], subtotal) -> dict:
    """Quote the discount for ``code`` against a cart subtotal."""
    if not normalize_code(code):
        raise MissingCodeError()

    coupon = find_active_coupon(db, code)
    if coupon is None:
        raise InvalidCouponError(normalize_code(code))

    discount = evaluate(coupon, subtotal)
    return {
        "code": coupon.code,
        "discount_amount": discount,
        "message": describe(coupon),
    }


# ---------- REDEMPTIONS ----------

def _existing_redemption(db: Session, code: str, order_id: str) -> Optional[CouponRedemption]:
    return db.execute(
        select(CouponRedemption).where(
            CouponRedemption.code == code,
            CouponRedemption.order_id == order_id,
        )
    ).scalars().first()


def record_redemption(
    db: Session,
    code: Optional[str],
    subtotal=0,
    discount_amount=0,
    order_id: Optional[str] = None,
    session_id: Optional[str] = None,
) -> CouponRedemption:
    """Append a redemption row.

    A second call for the same code and order returns the row already
    written instead of logging the redemption twice.
    """
    code_upper = normalize_code(code)
    if not code_upper:
        raise MissingCodeError()

    order_id = order_id or None
    session_id = session_id or None

    try:
        if order_id:
            existing = _existing_redemption(db, code_upper, order_id)
            if existing is not None:
                logger.info("redemption of %s for order %s already recorded", code_upper, order_id)
                return existing

        redemption = CouponRedemption(
            code=code_upper,
            subtotal=_to_decimal(subtotal),
            discount_amount=_to_decimal(discount_amount),
            order_id=order_id,
            session_id=session_id,
        )
        db.add(redemption)
        db.commit()
    except IntegrityError as e:
        # a concurrent request recorded the same (code, order) first
        db.rollback()
        existing = _existing_redemption(db, code_upper, order_id) if order_id else None
        if existing is None:
            logger.error("failed to record redemption of %s: %s", code_upper, e)
            raise PersistenceError("Failed to record redemption", e) from e
        logger.info("redemption of %s for order %s recorded concurrently", code_upper, order_id)
        return existing
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("failed to record redemption of %s: %s", code_upper, e)
        raise PersistenceError("Failed to record redemption", e) from e

    db.refresh(redemption)
    return redemption


# ---------- ADMIN ----------

def list_coupons(db: Session) -> list:
    try:
        return list(db.execute(select(Coupon).order_by(Coupon.code)).scalars())
    except SQLAlchemyError as e:
        raise PersistenceError("Failed to fetch coupons", e) from e


def create_coupon(db: Session, code: str, type: str, value, active: bool = True) -> Coupon:
    if not normalize_code(code):
        raise MissingCodeError()
    if type not in {t.value for t in CouponType}:
        raise ValidationError("Coupon type must be 'percent' or 'flat'")
    value = _to_decimal(value)
    if value < ZERO:
        raise ValidationError("Coupon value must not be negative")

    coupon = Coupon(code=code, type=type, value=value, active=active)
    db.add(coupon)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ValidationError("Coupon code already exists") from e
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Failed to create coupon", e) from e

    db.refresh(coupon)
    logger.info("coupon %s created (%s %s)", coupon.code, coupon.type, _plain(coupon.value))
    return coupon
