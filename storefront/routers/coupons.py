from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.db import get_db
from storefront.schemas import (
    CouponCreateRequest,
    CouponQuote,
    CouponRedemptionRequest,
    CouponSchema,
    SuccessResponse,
    ValidateCouponRequest,
)
from storefront.services import coupons as coupon_service

router = APIRouter(prefix="/api", tags=["coupons"])


# ---------- STOREFRONT ----------
@router.post("/validate-coupon", response_model=CouponQuote)
def validate_coupon(body: ValidateCouponRequest, db: Session = Depends(get_db)):
    quote = coupon_service.validate_coupon(db, body.code, body.subtotal)
    return CouponQuote(
        code=quote["code"],
        discount_amount=float(quote["discount_amount"]),
        message=quote["message"],
    )


@router.post("/coupon-redemptions", response_model=SuccessResponse)
def record_coupon_redemption(body: CouponRedemptionRequest, db: Session = Depends(get_db)):
    coupon_service.record_redemption(
        db,
        code=body.code,
        subtotal=body.subtotal,
        discount_amount=body.discount_amount,
        order_id=body.order_id,
        session_id=body.session_id,
    )
    return SuccessResponse(success=True)


# ---------- ADMIN ----------
@router.get("/coupons", response_model=List[CouponSchema])
def list_coupons(db: Session = Depends(get_db)):
    return [CouponSchema.model_validate(c) for c in coupon_service.list_coupons(db)]


@router.post("/coupons", response_model=CouponSchema, status_code=201)
def create_coupon(body: CouponCreateRequest, db: Session = Depends(get_db)):
    coupon = coupon_service.create_coupon(
        db, code=body.code, type=body.type, value=body.value, active=body.active
    )
    return CouponSchema.model_validate(coupon)
