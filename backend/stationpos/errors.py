# Overview: Checkout error taxonomy shared by services and routes.

"""
Checkout errors.

Every failure carries a kind (the class), a stable machine-readable code,
a human-readable message and, for cart-line failures, the 0-based index of
the offending line. Routes render them with to_dict() and http_status.

Retry semantics:
- ValidationError / AuthorizationError / NotFoundError: never retried
- InventoryError: retry only after the cart is adjusted to available stock
- PricingError: fix the cart line (fuel amount) or the product config
- ServerError: safe to resubmit the same request
"""

from __future__ import annotations


class CheckoutError(Exception):
    """Base class for every checkout failure."""

    kind = "CheckoutError"
    default_code = "CHECKOUT_ERROR"
    http_status = 400

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        line_index: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.line_index = line_index
        self.details = details or {}

    def at_line(self, index: int) -> "CheckoutError":
        """Attach the cart line index unless one is already set."""
        if self.line_index is None:
            self.line_index = index
        return self

    def to_dict(self) -> dict:
        data = {
            "success": False,
            "kind": self.kind,
            "code": self.code,
            "message": self.message,
        }
        if self.line_index is not None:
            data["index"] = self.line_index
        if self.details:
            data["details"] = self.details
        return data

    def __repr__(self) -> str:
        return f"<{self.kind} code={self.code} index={self.line_index} message={self.message!r}>"


class ValidationError(CheckoutError):
    """400-level malformed input (ids, quantities, empty or oversized cart)."""

    kind = "ValidationError"
    default_code = "VALIDATION_ERROR"
    http_status = 400


class AuthorizationError(CheckoutError):
    """Cashier may not transact against the requested store."""

    kind = "AuthorizationError"
    default_code = "AUTH_ERROR"
    http_status = 403


class NotFoundError(CheckoutError):
    """Referenced product or variant is missing or inactive."""

    kind = "NotFoundError"
    default_code = "NOT_FOUND"
    http_status = 404


class InventoryError(CheckoutError):
    """Insufficient stock, at pre-check or at commit time."""

    kind = "InventoryError"
    default_code = "INVENTORY_ERROR"
    http_status = 409


class PricingError(CheckoutError):
    """A line could not be priced (fuel amount or fuel configuration)."""

    kind = "PricingError"
    default_code = "PRICING_ERROR"
    http_status = 422


class ServerError(CheckoutError):
    """Unexpected persistence or infrastructure failure."""

    kind = "ServerError"
    default_code = "SERVER_ERROR"
    http_status = 500
