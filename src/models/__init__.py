"""Database model type definitions."""

from src.models.invoice import (
    PAID_STATUSES,
    CartItem,
    CartSnapshot,
    Invoice,
    InvoiceStatus,
    Product,
    Recipient,
    ShippingRequest,
    ShippingSnapshot,
    User,
    UserAddress,
)

__all__ = [
    "PAID_STATUSES",
    "CartItem",
    "CartSnapshot",
    "Invoice",
    "InvoiceStatus",
    "Product",
    "Recipient",
    "ShippingRequest",
    "ShippingSnapshot",
    "User",
    "UserAddress",
]
