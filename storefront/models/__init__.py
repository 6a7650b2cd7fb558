# storefront/models/__init__.py
from .order import *                 # Order, OrderItem
from .order_status_history import *  # OrderStatusHistory
from .coupon import *                # Coupon, CouponRedemption
