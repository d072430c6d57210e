# fulfillment/domain/errors.py
"""
Error taxonomy of the fulfillment core.

Every error carries a machine readable ``kind`` so that any transport can
render a structured failure without inspecting the message text.
"""
from typing import Any, Dict


class FulfillmentError(Exception):
    kind = "FulfillmentError"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class Unauthenticated(FulfillmentError):
    kind = "Unauthenticated"


class Forbidden(FulfillmentError):
    kind = "Forbidden"


class InvalidArgument(FulfillmentError, ValueError):
    kind = "InvalidArgument"


class NotFound(FulfillmentError):
    """Missing, or present but owned by somebody else."""

    kind = "NotFound"


class EmptyCart(FulfillmentError):
    kind = "EmptyCart"

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class InsufficientStock(FulfillmentError):
    kind = "InsufficientStock"

    def __init__(self, product_id: int, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"available {available}, requested {requested}",
            product_id=product_id,
            available=available,
            requested=requested,
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class Conflict(FulfillmentError):
    kind = "Conflict"


class StorageFailure(FulfillmentError):
    kind = "StorageFailure"


class IdentityUnavailable(FulfillmentError):
    kind = "IdentityUnavailable"
