# Overview: Typed domain errors shared by services and routes.

"""
Domain error taxonomy.

Every error carries a human-readable message, a stable machine code and a
details dict, so the client can render an actionable message (e.g. "missing
3 un of stock") instead of a generic failure. Routes translate them with
`jsonify(e.to_dict()), e.status_code`.
"""

from __future__ import annotations

from decimal import Decimal


class DomainError(Exception):
    """Base class for all expected business failures."""
    status_code = 400
    code = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(DomainError):
    """Missing or invalid input. No side effects happened."""
    code = "VALIDATION_ERROR"


class NotFoundError(DomainError):
    status_code = 404
    code = "NOT_FOUND"


class TenantAccessError(NotFoundError):
    """Row belongs to another tenant. Reported as not found so existence is not revealed."""
    code = "NOT_FOUND"


class OutOfStock(DomainError):
    status_code = 409
    code = "OUT_OF_STOCK"

    def __init__(self, product_id: int, product_name: str | None = None):
        label = product_name or f"product {product_id}"
        super().__init__(
            f"{label} is out of stock",
            details={"product_id": product_id},
        )


class InsufficientStock(DomainError):
    status_code = 409
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, requested: int, available: int, product_name: str | None = None):
        missing = requested - available
        label = product_name or f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {label}: missing {missing} un",
            details={
                "product_id": product_id,
                "requested_quantity": requested,
                "available_quantity": available,
                "missing_quantity": missing,
            },
        )
        self.product_id = product_id
        self.missing = missing


class InsufficientPayment(DomainError):
    code = "INSUFFICIENT_PAYMENT"

    def __init__(self, total: Decimal, received: Decimal):
        shortfall = total - received
        super().__init__(
            f"Amount received is {shortfall} short of the total",
            details={"total": str(total), "received": str(received), "shortfall": str(shortfall)},
        )
        self.shortfall = shortfall


class OverRefund(DomainError):
    status_code = 409
    code = "OVER_REFUND"


class InvalidTransition(DomainError):
    """Order lifecycle transition not allowed from the current status."""
    status_code = 409
    code = "INVALID_TRANSITION"


class CommitFailed(DomainError):
    """
    The atomic order write failed and was rolled back.

    stock_decremented tells the caller whether any stock left the shelf, so a
    retry cannot silently oversell or lose stock.
    """
    status_code = 503
    code = "COMMIT_FAILED"

    def __init__(self, message: str, *, stock_decremented: bool = False, retryable: bool = True, details: dict | None = None):
        merged = dict(details or {})
        merged.update({"stock_decremented": stock_decremented, "retryable": retryable})
        super().__init__(message, details=merged)
        self.stock_decremented = stock_decremented
        self.retryable = retryable


class PersistenceError(DomainError):
    """Backend/transport failure. Safe to retry."""
    status_code = 503
    code = "PERSISTENCE_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        merged = dict(details or {})
        merged.setdefault("retryable", True)
        super().__init__(message, details=merged)


class ConflictError(DomainError):
    """Unique business key already taken (e.g. duplicate SKU)."""
    status_code = 409
    code = "CONFLICT"
