"""Orders: checkout creation and the admin transitions cancel, refund, return.

Each transition is read-modify-append: fetch the order to capture its
current status, apply the update, then append one history row. Both writes
share a transaction; the history insert runs in a savepoint so that losing
the audit row never undoes a status change that already went through.
"""
import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from storefront.db import utcnow
from storefront.errors import (
    InvalidCouponError,
    MissingFieldError,
    OrderNotFoundError,
    PartialFailureWarning,
    PersistenceError,
    ValidationError,
)
from storefront.models.order import MONEY_MAX, Order, OrderItem
from storefront.services import coupons as coupon_service
from storefront.services import status_history
from storefront.utils.enums import ADMIN_TRANSITIONS, TERMINAL_STATUSES, OrderStatus

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


# ---------- READ ----------

def get_order(db: Session, order_id: str) -> Order:
    if not order_id:
        raise MissingFieldError("Order ID")
    try:
        order = db.execute(
            select(Order).options(selectinload(Order.items)).where(Order.id == order_id)
        ).scalars().first()
    except SQLAlchemyError as e:
        logger.error("order fetch failed for %s: %s", order_id, e)
        raise PersistenceError("Failed to fetch order", e) from e
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def get_order_by_external_id(db: Session, external_order_id: str) -> Order:
    if not external_order_id:
        raise MissingFieldError("External order ID")
    try:
        order = _find_by_external_id(db, external_order_id)
    except SQLAlchemyError as e:
        raise PersistenceError("Failed to fetch order", e) from e
    if order is None:
        raise OrderNotFoundError(external_order_id)
    return order


def list_orders(db: Session, status: Optional[str] = None, limit: int = 50) -> List[Order]:
    stmt = select(Order).order_by(Order.created_at.desc())
    if status and status != "all":
        stmt = stmt.where(Order.status == status.upper())
    try:
        return list(db.execute(stmt.limit(limit)).scalars())
    except SQLAlchemyError as e:
        raise PersistenceError("Failed to fetch orders", e) from e


def _money(value, label: str) -> Decimal:
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{label} must be a number") from None
    if not amount.is_finite():
        raise ValidationError(f"{label} must be a number")
    if amount < 0:
        raise ValidationError(f"{label} must not be negative")
    if amount > MONEY_MAX:
        raise ValidationError(f"{label} is too large")
    return amount


def _find_by_external_id(db: Session, external_order_id: str) -> Optional[Order]:
    return db.execute(
        select(Order)
        .options(selectinload(Order.items))
        .where(Order.external_order_id == external_order_id)
    ).scalars().first()


# ---------- CREATE ----------

def create_order(
    db: Session,
    items: list,
    customer_name: Optional[str] = None,
    customer_phone: Optional[str] = None,
    customer_email: Optional[str] = None,
    shipping_cost=0,
    coupon_code: Optional[str] = None,
    external_order_id: Optional[str] = None,
    session_id: Optional[str] = None,
) -> Order:
    """Place a PENDING order from checkout.

    ``items`` are dicts with ``product_name``, ``qty``, ``unit_price`` and an
    optional ``product_id``. A repeated ``external_order_id`` returns the
    order already placed. When a coupon is applied its redemption is logged
    against the new order after the order commits.
    """
    if not items:
        raise MissingFieldError("items")
    shipping = _money(shipping_cost or 0, "Shipping cost")

    lines = []
    subtotal = Decimal("0")
    for item in items:
        name = (item.get("product_name") or "").strip()
        if not name:
            raise MissingFieldError("product name")
        try:
            qty = int(item.get("qty") or 0)
        except (TypeError, ValueError):
            raise ValidationError("Quantity must be a whole number") from None
        if qty < 1:
            raise ValidationError("Quantity must be at least 1")
        unit_price = _money(item.get("unit_price"), "Unit price")
        line_total = unit_price * qty
        subtotal += line_total
        lines.append(OrderItem(
            product_id=item.get("product_id"),
            product_name=name,
            qty=qty,
            unit_price=unit_price,
            line_total=line_total,
        ))

    discount = Decimal("0")
    code = None
    if coupon_service.normalize_code(coupon_code):
        coupon = coupon_service.find_active_coupon(db, coupon_code)
        if coupon is None:
            raise InvalidCouponError(coupon_service.normalize_code(coupon_code))
        # stored amounts are cents, so round before they are added up
        discount = coupon_service.evaluate(coupon, subtotal).quantize(CENTS, ROUND_HALF_UP)
        code = coupon.code

    total = subtotal + shipping - discount
    if subtotal > MONEY_MAX or total > MONEY_MAX:
        raise ValidationError("Order total is too large")

    try:
        if external_order_id:
            existing = _find_by_external_id(db, external_order_id)
            if existing is not None:
                logger.info("order %s already placed as %s", external_order_id, existing.id)
                return existing

        order = Order(
            external_order_id=external_order_id or None,
            customer_name=customer_name,
            customer_phone=customer_phone,
            customer_email=customer_email,
            status=OrderStatus.PENDING.value,
            subtotal_amount=subtotal,
            shipping_cost=shipping,
            discount_amount=discount,
            coupon_code=code,
            total_amount=total,
        )
        order.items.extend(lines)
        db.add(order)
        db.commit()
    except IntegrityError as e:
        # same external id placed by a concurrent checkout
        db.rollback()
        existing = _find_by_external_id(db, external_order_id) if external_order_id else None
        if existing is None:
            logger.error("order insert failed: %s", e)
            raise PersistenceError("Failed to create order", e) from e
        return existing
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("order insert failed: %s", e)
        raise PersistenceError("Failed to create order", e) from e

    logger.info("order %s placed: subtotal %s, shipping %s, discount %s (%s)",
                order.id, subtotal, shipping, discount, code or "no coupon")

    if code:
        try:
            coupon_service.record_redemption(
                db, code, subtotal, discount, order_id=order.id, session_id=session_id,
            )
        except PersistenceError as e:
            logger.warning("order %s placed but redemption of %s was not logged: %s", order.id, code, e)

    return order


# ---------- TRANSITIONS ----------

def _transition(
    db: Session,
    order_id: Optional[str],
    new_status: OrderStatus,
    fields: dict,
    reason: Optional[str],
    admin_note: Optional[str],
    notifier=None,
) -> Order:
    if not order_id:
        raise MissingFieldError("Order ID")

    try:
        order = db.get(Order, order_id)
    except SQLAlchemyError as e:
        logger.error("order fetch failed for %s: %s", order_id, e)
        raise PersistenceError("Failed to fetch order", e) from e
    if order is None:
        raise OrderNotFoundError(order_id)

    old_status = order.status
    if old_status in {s.value for s in TERMINAL_STATUSES}:
        # no guard on the current status: admins may override a closed order
        logger.warning("order %s moved out of terminal status %s to %s",
                       order_id, old_status, new_status.value)

    try:
        order.status = new_status.value
        for key, value in fields.items():
            setattr(order, key, value)
        order.admin_notes = admin_note
        order.updated_at = utcnow()
        db.flush()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("status update %s -> %s failed for order %s: %s",
                     old_status, new_status.value, order_id, e)
        raise PersistenceError("Failed to update order", e) from e

    try:
        with db.begin_nested():
            status_history.append_history(
                db,
                order_id=order_id,
                old_status=old_status,
                new_status=new_status.value,
                reason=reason,
                admin_note=admin_note,
                created_by="admin",
            )
    except SQLAlchemyError as e:
        logger.warning(
            "%s: order %s is %s but its history row was not written: %s",
            PartialFailureWarning.__name__, order_id, new_status.value, e,
        )

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("commit failed for order %s: %s", order_id, e)
        raise PersistenceError("Failed to update order", e) from e

    db.refresh(order)
    logger.info("order %s: %s -> %s", order_id, old_status, order.status)

    if notifier is not None:
        try:
            notifier.notify_order_status_changed(order)
        except Exception:
            logger.exception("notification failed for order %s", order_id)

    return order


def cancel_order(db: Session, order_id: Optional[str], reason: Optional[str] = None,
                 admin_note: Optional[str] = None, notifier=None) -> Order:
    return _transition(
        db, order_id, OrderStatus.CANCELLED,
        {"cancel_reason": reason},
        reason, admin_note, notifier,
    )


def refund_order(db: Session, order_id: Optional[str], refund_amount=None,
                 reason: Optional[str] = None, admin_note: Optional[str] = None,
                 notifier=None) -> Order:
    missing = []
    if not order_id:
        missing.append("Order ID")
    if refund_amount is None or refund_amount == "":
        missing.append("refund amount")
    if missing:
        raise MissingFieldError(*missing)

    amount = _money(refund_amount, "Refund amount")

    return _transition(
        db, order_id, OrderStatus.REFUNDED,
        {"refund_amount": amount, "refund_reason": reason},
        reason, admin_note, notifier,
    )


def return_order(db: Session, order_id: Optional[str], reason: Optional[str] = None,
                 admin_note: Optional[str] = None, notifier=None) -> Order:
    return _transition(
        db, order_id, OrderStatus.RETURNED,
        {"return_reason": reason},
        reason, admin_note, notifier,
    )


def manage_order(db: Session, order_id: Optional[str], status: Optional[str],
                 reason: Optional[str] = None, admin_note: Optional[str] = None,
                 refund_amount=None, notifier=None) -> Order:
    """One entry point for the admin console's status dropdown."""
    if not order_id and not status:
        raise MissingFieldError("Order ID", "status")
    if not order_id:
        raise MissingFieldError("Order ID")
    if not status:
        raise MissingFieldError("status")

    try:
        target = OrderStatus(status.upper())
    except ValueError:
        target = None
    if target not in ADMIN_TRANSITIONS:
        raise ValidationError("Invalid status for order management")

    if target is OrderStatus.CANCELLED:
        return cancel_order(db, order_id, reason, admin_note, notifier)
    if target is OrderStatus.RETURNED:
        return return_order(db, order_id, reason, admin_note, notifier)
    return refund_order(db, order_id, refund_amount, reason, admin_note, notifier)
