import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.db import utcnow
from storefront.errors import MissingFieldError, PersistenceError
from storefront.models.order import Order
from storefront.models.order_status_history import OrderStatusHistory
from storefront.utils.enums import OrderStatus

logger = logging.getLogger(__name__)


def append_history(
    db: Session,
    order_id: str,
    old_status: str,
    new_status: str,
    reason: Optional[str] = None,
    admin_note: Optional[str] = None,
    created_by: str = "admin",
) -> OrderStatusHistory:
    """Add one audit row to the session. The caller owns the transaction."""
    row = OrderStatusHistory(
        order_id=order_id,
        old_status=old_status,
        new_status=new_status,
        reason=reason,
        admin_note=admin_note,
        created_by=created_by,
        created_at=utcnow(),
    )
    db.add(row)
    db.flush()
    return row


def get_order_history(db: Session, order_id: Optional[str]) -> List[OrderStatusHistory]:
    """History of an order, newest first."""
    if not order_id:
        raise MissingFieldError("Order ID")
    stmt = (
        select(OrderStatusHistory)
        .where(OrderStatusHistory.order_id == order_id)
        .order_by(OrderStatusHistory.created_at.desc(), OrderStatusHistory.id.desc())
    )
    try:
        return list(db.execute(stmt).scalars())
    except SQLAlchemyError as e:
        logger.error("history fetch failed for order %s: %s", order_id, e)
        raise PersistenceError("Failed to fetch order history", e) from e


def _latest_entry(db: Session, order_id: str) -> Optional[OrderStatusHistory]:
    stmt = (
        select(OrderStatusHistory)
        .where(OrderStatusHistory.order_id == order_id)
        .order_by(OrderStatusHistory.created_at.desc(), OrderStatusHistory.id.desc())
        .limit(1)
    )
    return db.execute(stmt).scalars().first()


def backfill_status_history(db: Session, created_by: str = "reconciler") -> List[str]:
    """Write the missing history row for every order whose current status
    is not the ``new_status`` of its newest history entry.

    Orders still in PENDING with no history are consistent and skipped.
    Returns the ids of the orders that got a row.
    """
    fixed: List[str] = []
    try:
        orders = db.execute(select(Order).order_by(Order.created_at)).scalars().all()
        for order in orders:
            latest = _latest_entry(db, order.id)
            if latest is None:
                if order.status == OrderStatus.PENDING.value:
                    continue
                old_status = OrderStatus.PENDING.value
            elif latest.new_status == order.status:
                continue
            else:
                old_status = latest.new_status

            append_history(
                db,
                order_id=order.id,
                old_status=old_status,
                new_status=order.status,
                reason="history backfill",
                created_by=created_by,
            )
            fixed.append(order.id)
            logger.info("backfilled history for order %s: %s -> %s", order.id, old_status, order.status)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("history reconciliation failed: %s", e)
        raise PersistenceError("Failed to reconcile order history", e) from e

    return fixed
