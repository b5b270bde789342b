"""Error taxonomy for the orders application.

Every error carries a short machine-readable ``code`` so the HTTP layer can
map it to a status and callers can branch on it without parsing messages.
"""


class OrderError(Exception):
    """Base class for all errors raised by the orders application."""

    code = "ORDER_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(OrderError, ValueError):
    """The request is well-formed JSON but violates a business rule."""

    code = "VALIDATION_ERROR"


class NotFoundError(OrderError):
    """A referenced product or order does not exist."""

    code = "NOT_FOUND"


class ProductNotFound(NotFoundError):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: int):
        super().__init__(f"Product with ID {product_id} not found")
        self.product_id = product_id


class OrderNotFound(NotFoundError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        super().__init__("Order not found")
        self.order_id = order_id


class StoreError(OrderError):
    """The storage backend failed. The underlying exception is chained as ``__cause__``."""

    code = "STORE_ERROR"


class ScanError(StoreError):
    """A row did not match the expected arity or scalar types."""

    code = "SCAN_ERROR"


class ConnectivityError(StoreError):
    """The storage backend is unreachable."""

    code = "STORE_UNAVAILABLE"
