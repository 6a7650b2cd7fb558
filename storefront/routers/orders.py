from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from storefront import config
from storefront.db import get_db
from storefront.schemas import (
    CancelOrderRequest,
    CreateOrderRequest,
    ManageOrderRequest,
    OrderActionResponse,
    OrderDetailSchema,
    OrderHistorySchema,
    OrderSchema,
    RefundOrderRequest,
    ReturnOrderRequest,
)
from storefront.services import orders as order_service
from storefront.services import status_history

router = APIRouter(prefix="/api/orders", tags=["admin-orders"])


def get_notifier(request: Request):
    return getattr(request.app.state, "notifier", None)


def _action_response(order) -> OrderActionResponse:
    return OrderActionResponse(success=True, order=OrderSchema.model_validate(order))


# ---------- LIST / HISTORY ----------
@router.get("", response_model=List[OrderSchema])
def list_orders(
    status: Optional[str] = Query(None),
    limit: int = Query(config.DEFAULT_ORDERS_LIMIT, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return [OrderSchema.model_validate(o) for o in order_service.list_orders(db, status, limit)]


@router.get("/history", response_model=List[OrderHistorySchema])
def order_history(order_id: Optional[str] = Query(None, alias="orderId"), db: Session = Depends(get_db)):
    rows = status_history.get_order_history(db, order_id)
    return [OrderHistorySchema.model_validate(r) for r in rows]


# ---------- CHECKOUT ----------
@router.post("", response_model=OrderDetailSchema, status_code=201)
def create_order(body: CreateOrderRequest, db: Session = Depends(get_db)):
    order = order_service.create_order(
        db,
        [item.model_dump() for item in body.items],
        customer_name=body.customer_name,
        customer_phone=body.customer_phone,
        customer_email=body.customer_email,
        shipping_cost=body.shipping_cost,
        coupon_code=body.coupon_code,
        external_order_id=body.external_order_id,
        session_id=body.session_id,
    )
    return OrderDetailSchema.model_validate(order)


# ---------- TRANSITIONS ----------
@router.post("/cancel", response_model=OrderActionResponse)
def cancel_order(body: CancelOrderRequest, db: Session = Depends(get_db), notifier=Depends(get_notifier)):
    order = order_service.cancel_order(
        db, body.order_id, body.cancel_reason, body.admin_note, notifier=notifier
    )
    return _action_response(order)


@router.post("/refund", response_model=OrderActionResponse)
def refund_order(body: RefundOrderRequest, db: Session = Depends(get_db), notifier=Depends(get_notifier)):
    order = order_service.refund_order(
        db, body.order_id, body.refund_amount, body.refund_reason, body.admin_note,
        notifier=notifier,
    )
    return _action_response(order)


@router.post("/return", response_model=OrderActionResponse)
def return_order(body: ReturnOrderRequest, db: Session = Depends(get_db), notifier=Depends(get_notifier)):
    order = order_service.return_order(
        db, body.order_id, body.return_reason, body.admin_note, notifier=notifier
    )
    return _action_response(order)


@router.post("/manage", response_model=OrderActionResponse)
def manage_order(body: ManageOrderRequest, db: Session = Depends(get_db), notifier=Depends(get_notifier)):
    order = order_service.manage_order(
        db, body.order_id, body.status, body.reason, body.admin_note,
        refund_amount=body.refund_amount, notifier=notifier,
    )
    return _action_response(order)


# ---------- DETAILS ----------
@router.get("/by-external/{external_order_id}", response_model=OrderDetailSchema)
def order_by_external_id(external_order_id: str, db: Session = Depends(get_db)):
    return OrderDetailSchema.model_validate(order_service.get_order_by_external_id(db, external_order_id))


@router.get("/{order_id}", response_model=OrderDetailSchema)
def order_detail(order_id: str, db: Session = Depends(get_db)):
    return OrderDetailSchema.model_validate(order_service.get_order(db, order_id))
