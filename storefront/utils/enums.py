from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"
    REFUNDED = "REFUNDED"


# statuses an admin can move an order into from the console
ADMIN_TRANSITIONS = {OrderStatus.CANCELLED, OrderStatus.RETURNED, OrderStatus.REFUNDED}

TERMINAL_STATUSES = ADMIN_TRANSITIONS

STATUS_LABELS = {
    OrderStatus.PENDING: "Pending",
    OrderStatus.PAID: "Paid",
    OrderStatus.PROCESSING: "Processing",
    OrderStatus.SHIPPED: "Shipped",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
    OrderStatus.RETURNED: "Returned",
    OrderStatus.REFUNDED: "Refunded",
}


class CouponType(str, Enum):
    PERCENT = "percent"
    FLAT = "flat"
