# Overview: Error taxonomy for the sale engine; every failure a caller can act on has its own type.

from __future__ import annotations


class SaleError(Exception):
    """Base for sale engine errors. Routes map these to JSON responses."""

    code = "SALE_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class InvalidRequest(SaleError):
    code = "INVALID_REQUEST"
    http_status = 400


class NotFound(SaleError):
    code = "NOT_FOUND"
    http_status = 404


class TerminalNotFound(NotFound):
    code = "TERMINAL_NOT_FOUND"

    def __init__(self, terminal_id):
        super().__init__(f"Terminal {terminal_id} not found", {"terminal_id": terminal_id})


class ProductNotFound(NotFound):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id):
        super().__init__(f"Product {product_id} not found", {"product_id": product_id})


class TransactionNotFound(NotFound):
    code = "TRANSACTION_NOT_FOUND"

    def __init__(self, ref):
        key = "transaction_number" if isinstance(ref, str) else "transaction_id"
        super().__init__(f"Transaction {ref} not found", {key: ref})


class CustomerNotFound(NotFound):
    code = "CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id):
        super().__init__(f"Customer {customer_id} not found", {"customer_id": customer_id})


class ProductInactive(SaleError):
    code = "PRODUCT_INACTIVE"
    http_status = 409

    def __init__(self, product_id, sku: str | None = None):
        details = {"product_id": product_id}
        if sku:
            details["sku"] = sku
        super().__init__(f"Product {product_id} is not active", details)


class InsufficientStock(SaleError):
    code = "INSUFFICIENT_STOCK"
    http_status = 409

    def __init__(self, product_id: int, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: available {available}, requested {requested}",
            {"product_id": product_id, "available": available, "requested": requested},
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class AmountMismatch(SaleError):
    code = "AMOUNT_MISMATCH"
    http_status = 400

    def __init__(self, expected_cents: int, actual_cents: int):
        super().__init__(
            f"Payment total {actual_cents} does not match transaction total {expected_cents}",
            {
                "expected_cents": expected_cents,
                "actual_cents": actual_cents,
                "difference_cents": actual_cents - expected_cents,
            },
        )
        self.expected_cents = expected_cents
        self.actual_cents = actual_cents


class PaymentDeclined(SaleError):
    code = "PAYMENT_DECLINED"
    http_status = 402


class InvalidStateTransition(SaleError):
    code = "INVALID_STATE_TRANSITION"
    http_status = 409

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot transition transaction from {current} to {target}",
            {"current": current, "target": target},
        )
        self.current = current
        self.target = target


class StorageFailure(SaleError):
    code = "STORAGE_FAILURE"
    http_status = 503


class InvariantViolation(SaleError):
    """Computed records disagree with each other; indicates a bug, never bad input."""
    code = "INTERNAL_ERROR"
    http_status = 500
