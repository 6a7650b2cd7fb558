"""Error types raised by the storefront services.

Each error carries the HTTP status class it maps to; the API layer turns
them into ``{"error": ..., "errorType": ...}`` responses.
"""


class ShopError(Exception):
    """Base exception for all storefront errors."""

    http_status = 500
    kind = "ShopError"


class ValidationError(ShopError):
    """Missing or malformed input. Raised before any write happens."""

    http_status = 400
    kind = "ValidationError"


class MissingCodeError(ValidationError):
    kind = "MissingCode"

    def __init__(self):
        super().__init__("Coupon code is required")


class MissingFieldError(ValidationError):
    kind = "MissingField"

    def __init__(self, *fields: str):
        self.fields = fields
        if len(fields) == 1:
            msg = f"{fields[0]} is required"
        else:
            msg = f"{', '.join(fields[:-1])} and {fields[-1]} are required"
        super().__init__(msg)


class InvalidCouponError(ValidationError):
    kind = "InvalidCoupon"

    def __init__(self, code: str | None = None):
        self.code = code
        super().__init__("Invalid coupon")


class NotFoundError(ShopError):
    http_status = 404
    kind = "NotFoundError"


class OrderNotFoundError(NotFoundError):
    kind = "OrderNotFound"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__("Order not found")


class PersistenceError(ShopError):
    """A database call failed. The message of the driver error is kept."""

    kind = "PersistenceError"

    def __init__(self, message: str, original: Exception | None = None):
        self.original = original
        if original is not None:
            detail = str(getattr(original, "orig", None) or original).splitlines()[0]
            message = f"{message}: {detail}"
        super().__init__(message)


class PartialFailureWarning(UserWarning):
    """Status changed but its history row could not be written."""
