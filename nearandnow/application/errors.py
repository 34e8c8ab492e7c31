"""Order placement failures.

Raised by the application layer; the API layer turns them into
structured JSON responses (see ``nearandnow.main``).
"""

from typing import Optional


class OrderPlacementError(Exception):
    """Base class for every typed checkout failure."""

    code = "order_error"
    status_code = 500

    def __init__(self, message: str, step: Optional[str] = None, unavailable_items: Optional[list[str]] = None):
        super().__init__(message)
        self.message = message
        self.step = step
        self.unavailable_items = unavailable_items or []

    def to_dict(self) -> dict:
        body = {"error": self.code, "detail": self.message}
        if self.step:
            body["step"] = self.step
        if self.unavailable_items:
            body["unavailable_items"] = self.unavailable_items
        return body


class ValidationError(OrderPlacementError):
    """Malformed or missing request fields."""
    code = "validation_error"
    status_code = 400


class AddressResolutionError(OrderPlacementError):
    code = "address_resolution_error"
    status_code = 422


class NoStoresAvailableError(OrderPlacementError):
    code = "no_stores_available"
    status_code = 422


class ItemsUnavailableError(OrderPlacementError):
    """One or more cart items cannot be sourced from any nearby store."""
    code = "items_unavailable"
    status_code = 409


class ProductNotAvailableError(OrderPlacementError):
    """An allocated item has no active inventory row at its store any more."""
    code = "product_not_available"
    status_code = 409


class SequenceGenerationError(OrderPlacementError):
    code = "sequence_generation_error"
    status_code = 503


class PersistenceError(OrderPlacementError):
    code = "persistence_error"
    status_code = 500


class InvalidStatusTransition(OrderPlacementError):
    code = "invalid_status_transition"
    status_code = 409
