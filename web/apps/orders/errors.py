"""Error taxonomy for the orders domain.

Every error carries a short machine-readable ``code`` and the HTTP status
the API layer should answer with. The exception handler in
``gateway.envelope`` matches on these classes, never on message text.
"""

from typing import Any, Optional


class OrderError(Exception):
    """Base class for business errors raised by the orders domain.

    Attributes:
        code: Short upper-case error code returned to clients.
        message: Human readable description.
        details: Optional structured payload (e.g. invalid cart items).
    """

    http_status = 500
    default_code = "ORDER_ERROR"
    default_message = "Order operation failed"

    def __init__(
        self,
        code: Optional[str] = None,
        message: Optional[str] = None,
        details: Any = None,
    ):
        self.code = code or self.default_code
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.code)


class ValidationError(OrderError):
    http_status = 400
    default_code = "VALIDATION_ERROR"
    default_message = "Invalid request data"


class NotFoundError(OrderError):
    http_status = 404
    default_code = "NOT_FOUND"
    default_message = "Resource not found"


class AuthorizationError(OrderError):
    http_status = 403
    default_code = "FORBIDDEN"
    default_message = "Not authorized to access this resource"


class ConflictError(OrderError):
    http_status = 409
    default_code = "CONFLICT"
    default_message = "Resource already exists"


class InsufficientStockError(OrderError):
    """Raised when a reservation cannot be satisfied by available stock."""

    http_status = 400
    default_code = "INSUFFICIENT_STOCK"
    default_message = "Insufficient stock"

    def __init__(self, product_id=None, requested: int = 0, available: int = 0, **kwargs):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        kwargs.setdefault(
            "details",
            {
                "product_id": str(product_id) if product_id is not None else None,
                "requested_quantity": requested,
                "available_quantity": available,
            },
        )
        super().__init__(**kwargs)


class PaymentError(OrderError):
    http_status = 400
    default_code = "PAYMENT_FAILED"
    default_message = "Payment could not be processed"


class OrderAlreadyCancelled(OrderError):
    http_status = 400
    default_code = "ORDER_ALREADY_CANCELLED"
    default_message = "Order is already cancelled"


class UnexpectedError(OrderError):
    http_status = 500
    default_code = "INTERNAL_ERROR"
    default_message = "Internal server error"
