"""
Domain errors raised by the order workflow.

Every error carries the HTTP status it maps to and a stable machine-readable
code, so the API layer can render it and the checkout client can pick a
specific message without parsing English text.
"""

from typing import Any, Optional
from starlette import status


class OrderError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "order_error"
    message: str = "Order request failed"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(OrderError):
    code = "validation_error"
    message = "Missing required customer fields"


class MissingProofError(OrderError):
    code = "missing_proof"
    message = "Payment proof must be uploaded before confirming the order"


class EmptyCartError(OrderError):
    code = "empty_cart"
    message = "Cart is empty"


class ProductNotFoundError(OrderError):
    code = "product_not_found"
    message = "Some products do not exist"


class ProductUnavailableError(OrderError):
    code = "product_unavailable"
    message = "Some products are not available"


class InsufficientStockError(OrderError):
    """details: list of {"product", "requested", "available"}"""
    code = "insufficient_stock"
    message = "Insufficient stock"


class OrderNotFoundError(OrderError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "order_not_found"
    message = "Order not found"


class InvalidStateError(OrderError):
    code = "invalid_state"
    message = "Order cannot be cancelled - it is not in pending status"


class UnauthorizedError(OrderError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "unauthorized"
    message = "Unauthorized - order does not belong to this user"


class InfrastructureError(OrderError):
    """
    Unexpected failure from the database or the blob store.

    The message is a generic description of the failed step; the underlying
    exception is logged server-side only.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "infrastructure_error"
    message = "Internal server error"

    def to_dict(self) -> dict:
        return {"error": "Internal server error", "code": self.code, "details": self.message}
