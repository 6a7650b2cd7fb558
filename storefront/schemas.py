# storefront/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront.models.order import MONEY_MAX

# amounts stored in Numeric(12, 2) columns
Money = Annotated[Decimal, Field(ge=0, le=MONEY_MAX)]


class RequestModel(BaseModel):
    """Incoming JSON: camelCase keys, unknown keys rejected."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class ResponseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ---------- COUPONS ----------

class ValidateCouponRequest(RequestModel):
    code: Optional[str] = None
    subtotal: Money = Decimal("0")


class CouponQuote(ResponseModel):
    code: str
    discount_amount: float
    message: str


class CouponRedemptionRequest(RequestModel):
    code: Optional[str] = None
    subtotal: Money = Decimal("0")
    discount_amount: Money = Decimal("0")
    order_id: Optional[str] = None
    session_id: Optional[str] = None


class CouponCreateRequest(RequestModel):
    code: str = Field(..., min_length=1, max_length=64)
    type: str = Field(..., pattern="^(percent|flat)$")
    value: Money
    active: bool = True


class CouponSchema(ResponseModel):
    id: int
    code: str
    type: str
    value: float
    active: bool


class SuccessResponse(BaseModel):
    success: bool = True


# ---------- ORDERS ----------

class CreateOrderItem(RequestModel):
    product_id: Optional[str] = None
    product_name: str = Field(..., min_length=1, max_length=255)
    qty: int = Field(..., ge=1)
    unit_price: Money


class CreateOrderRequest(RequestModel):
    external_order_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    items: List[CreateOrderItem] = Field(default_factory=list)
    shipping_cost: Money = Decimal("0")
    coupon_code: Optional[str] = None
    session_id: Optional[str] = None


class CancelOrderRequest(RequestModel):
    order_id: Optional[str] = None
    cancel_reason: Optional[str] = None
    admin_note: Optional[str] = None


class RefundOrderRequest(RequestModel):
    order_id: Optional[str] = None
    refund_amount: Optional[Money] = None
    refund_reason: Optional[str] = None
    admin_note: Optional[str] = None


class ReturnOrderRequest(RequestModel):
    order_id: Optional[str] = None
    return_reason: Optional[str] = None
    admin_note: Optional[str] = None


class ManageOrderRequest(RequestModel):
    order_id: Optional[str] = None
    status: Optional[str] = None
    reason: Optional[str] = None
    admin_note: Optional[str] = None
    refund_amount: Optional[Money] = None


class OrderItemSchema(ResponseModel):
    id: int
    product_id: Optional[str] = None
    product_name: str
    qty: int
    unit_price: float
    line_total: float


class OrderSchema(ResponseModel):
    id: str
    external_order_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    status: str
    subtotal_amount: float
    shipping_cost: float
    discount_amount: float
    coupon_code: Optional[str] = None
    total_amount: float
    refund_amount: Optional[float] = None
    cancel_reason: Optional[str] = None
    return_reason: Optional[str] = None
    refund_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class OrderDetailSchema(OrderSchema):
    items: List[OrderItemSchema] = []


class OrderActionResponse(ResponseModel):
    success: bool = True
    order: OrderSchema


class OrderHistorySchema(ResponseModel):
    id: int
    order_id: str
    old_status: str
    new_status: str
    reason: Optional[str] = None
    admin_note: Optional[str] = None
    created_by: str
    created_at: datetime
