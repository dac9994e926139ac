# Overview: Error taxonomy shared by the commit engine, reconciler, fanout and reports.

from __future__ import annotations


class PosError(Exception):
    """Base for all core errors; carries structured details for the API layer."""
    code = "pos_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class ValidationError(PosError):
    """Rejected before any write; safe to retry after correction."""
    code = "validation_error"


class InvalidQuantity(ValidationError):
    code = "invalid_quantity"


class ProductNotFound(ValidationError):
    code = "product_not_found"


class CartError(ValidationError):
    code = "cart_error"


class InsufficientStock(PosError):
    """Commit precondition failed: a line asks for more than is on hand."""
    code = "insufficient_stock"


class AuthorizationError(PosError):
    """Operator lacks the role for this operation; not retryable."""
    code = "not_authorized"


class StoreUnavailable(PosError):
    """The store could not complete the atomic write; nothing was applied."""
    code = "store_unavailable"


class PartialApply(PosError):
    """A movement was recorded but its stock update did not land."""
    code = "partial_apply"


class NotificationNotFound(PosError):
    code = "notification_not_found"


class SaleNotFound(PosError):
    code = "sale_not_found"


class MovementNotFound(PosError):
    code = "movement_not_found"


class ReportError(PosError):
    """Raised when report generation fails."""
    code = "report_error"
