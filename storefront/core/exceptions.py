"""
Error taxonomy for the order submission flow.

Every error carries the HTTP status it maps to and a stable ``code`` so the
exception handlers in ``storefront.main`` can render a JSON body without
inspecting the type.
"""
from typing import Dict, List, Optional


class StorefrontError(Exception):
    """Base class for errors that are translated into JSON responses."""

    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class ValidationError(StorefrontError):
    """Client input failed schema validation."""

    code = "validation_error"

    def __init__(self, details: List[Dict[str, str]], message: str = "Validation failed"):
        super().__init__(message)
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


# ============= INVENTORY =============

class InventoryError(StorefrontError):
    """A line item failed a business rule during the inventory check."""


class ProductNotFound(InventoryError):
    code = "product_not_found"

    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id

    def to_dict(self) -> dict:
        return {**super().to_dict(), "productId": self.product_id}


class OutOfStock(InventoryError):
    code = "out_of_stock"

    def __init__(self, sku: str):
        super().__init__(f"Product {sku} is out of stock")
        self.sku = sku

    def to_dict(self) -> dict:
        return {**super().to_dict(), "sku": self.sku}


class SkuMismatch(InventoryError):
    code = "sku_mismatch"

    def __init__(self, product_id: str, expected: str, submitted: str):
        super().__init__(
            f"SKU mismatch for product {product_id}. Expected {expected}, got {submitted}"
        )
        self.product_id = product_id
        self.expected = expected
        self.submitted = submitted

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "productId": self.product_id,
            "expectedSku": self.expected,
            "submittedSku": self.submitted,
        }


class InsufficientStock(InventoryError):
    code = "insufficient_stock"

    def __init__(self, sku: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for product {sku}. Available: {available}, Requested: {requested}"
        )
        self.sku = sku
        self.available = available
        self.requested = requested

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "sku": self.sku,
            "available": self.available,
            "requested": self.requested,
        }


# ============= ORDERS =============

class OrderNotFound(StorefrontError):
    status_code = 404
    code = "order_not_found"

    def __init__(self, order_id: str):
        super().__init__("Order not found")
        self.order_id = order_id


class VersionConflict(StorefrontError):
    status_code = 409
    code = "version_conflict"

    def __init__(self, message: str = "Order has been modified by another user. Please refresh and try again."):
        super().__init__(message)


class TransactionFailure(StorefrontError):
    """Infrastructure failure while writing; safe for the caller to retry."""

    status_code = 500
    code = "transaction_failure"

    def __init__(self, message: str = "Failed to create order"):
        super().__init__(message)


# ============= PERIMETER =============

class RateLimited(StorefrontError):
    status_code = 429
    code = "rate_limited"

    def __init__(self, retry_after: int, limit: int, reset: int):
        super().__init__(f"Rate limit exceeded. Please try again in {retry_after} seconds")
        self.retry_after = retry_after
        self.limit = limit
        self.reset = reset

    def to_dict(self) -> dict:
        return {**super().to_dict(), "retryAfter": self.retry_after}

    def headers(self) -> Dict[str, str]:
        return {
            "Retry-After": str(self.retry_after),
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(self.reset),
        }


class CsrfRejected(StorefrontError):
    status_code = 403
    code = "csrf_rejected"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "Invalid CSRF token. Please refresh the page and try again.")
