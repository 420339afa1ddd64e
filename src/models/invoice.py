"""Invoice, user and product document shapes stored in the document store."""

from datetime import datetime
from typing import Any, Literal, TypedDict


# Statuses modeled explicitly; any other provider status is stored verbatim
InvoiceStatus = Literal["pending", "paid", "redirect", "expired", "cancelled"]

# Statuses meaning payment side effects have already been applied
PAID_STATUSES: frozenset[str] = frozenset({"paid", "redirect"})

OpenLogiStatus = Literal["success", "failed"]


class CartItem(TypedDict):
    """Single cart entry captured at checkout."""

    id: str
    quantity: int


class CartSnapshot(TypedDict, total=False):
    """Immutable copy of the purchased items."""

    items: list[CartItem]
    subtotal: float


class Recipient(TypedDict, total=False):
    """Delivery recipient.

    Domestic recipients carry ``prefecture``; international recipients carry
    ``region_code``, ``state`` and ``city``.
    """

    name: str
    postcode: str
    phone: str
    address1: str
    address2: str
    company: str
    division: str
    prefecture: str
    region_code: str
    state: str
    city: str


class ShippingRequest(TypedDict, total=False):
    """Shipping choices attached to an address."""

    international: bool
    recipient: Recipient
    delivery_carrier: str
    delivery_method: str
    delivery_time_slot: str
    delivery_service: str
    insurance: bool
    purpose: str


class UserAddress(TypedDict, total=False):
    """Address entry stored on a user or captured in a shipping snapshot."""

    id: str
    isDefault: bool
    shippingFee: float
    shippingRequest: ShippingRequest


class ShippingSnapshot(TypedDict, total=False):
    """Immutable copy of the chosen delivery address."""

    shippingAddress: UserAddress


class Invoice(TypedDict, total=False):
    """Invoice document.

    Owned by the order state service; created at checkout and never deleted here.
    """

    id: str
    sessionId: str
    userId: str
    amount_usd: float
    status: str
    cartSnapshot: CartSnapshot
    shippingSnapshot: ShippingSnapshot
    shipmentId: str | None
    paidAt: datetime
    expiredAt: datetime
    webhook_data: dict[str, Any]
    openlogiStatus: OpenLogiStatus
    openlogiShipmentId: str
    openlogiProviderStatus: str
    openlogiError: str
    openlogiLastAttempt: datetime
    autoShippedAt: datetime
    updatedAt: datetime


class User(TypedDict, total=False):
    """User document holding the active cart and saved addresses."""

    id: str
    cart: list[CartItem]
    lastPurchaseAt: datetime
    address: list[UserAddress]


class Product(TypedDict, total=False):
    """Product document; only stock is touched by this service."""

    id: str
    stock: int
    updatedAt: datetime
