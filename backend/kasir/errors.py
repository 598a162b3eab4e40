# backend/kasir/errors.py
"""
Error taxonomy for the transaction engine.

Every rejection carries a human-readable message plus a `details` dict the
API layer returns verbatim. `http_status` is the status code routes use.
"""
from __future__ import annotations


class PosError(Exception):
    """Base class for engine errors."""
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(PosError):
    """400-level input problem (bad cart shape, bad field)."""


class StoreNotFoundError(PosError):
    http_status = 404


class ProductNotFoundError(PosError):
    """Product missing, inactive, or owned by another store."""
    http_status = 404

    def __init__(self, product_id, message: str | None = None):
        super().__init__(
            message or f"Product not found: {product_id}",
            details={"product_id": product_id},
        )
        self.product_id = product_id


class InsufficientStockError(PosError):
    http_status = 409

    def __init__(self, *, product_id: int, product_name: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for {product_name}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "requested_quantity": requested,
                "available_quantity": available,
            },
        )
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available


class InsufficientPaymentError(PosError):
    def __init__(self, *, total: int, payment_amount: int):
        super().__init__(
            "Insufficient payment amount",
            details={
                "total": total,
                "payment_amount": payment_amount,
                "shortfall": total - payment_amount,
            },
        )


class PersistenceError(PosError):
    """Database failure inside an atomic scope; nothing was kept."""
    http_status = 500
