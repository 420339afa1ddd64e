"""OpenLogi shipment payload, provider result and submission schemas."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from src.services.fulfillment_constants import (
    DeliveryCarrier,
    DeliveryMethod,
    DeliveryService,
    DeliveryTimeSlot,
    ShipmentPurpose,
)


class SenderAddress(BaseModel):
    """Fixed company sender address."""

    postcode: str
    prefecture: str
    address1: str
    address2: str
    name: str
    company: str
    division: str
    phone: str


class DomesticRecipient(BaseModel):
    """Recipient inside Japan, addressed by prefecture."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    prefecture: str = Field(min_length=1)
    address1: str = Field(min_length=1)
    address2: str | None = None
    postcode: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    company: str | None = None
    division: str | None = None


class InternationalRecipient(BaseModel):
    """Recipient outside Japan, addressed by region code and city."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    region_code: str = Field(min_length=1)
    state: str | None = None
    city: str = Field(min_length=1)
    address1: str = Field(min_length=1)
    address2: str | None = None
    postcode: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    company: str | None = None


class ShipmentItem(BaseModel):
    """Provider item entry."""

    code: str = Field(min_length=1, description="OpenLogi product code")
    quantity: int = Field(ge=1)


class BaseShipmentRequest(BaseModel):
    """Fields shared by domestic and international shipment requests."""

    identifier: str
    order_no: str
    warehouse: str

    subtotal_amount: int = Field(ge=0)
    delivery_charge: int = Field(ge=0)
    handling_charge: int = Field(ge=0)
    discount_amount: int = Field(ge=0)
    total_amount: int

    cushioning_unit: Literal["ORDER", "ITEM"]
    cushioning_type: Literal["BUBBLE_PACK", "BUBBLE_DOUBLE_PACK"]
    gift_wrapping_unit: Literal["ORDER", "ITEM"] | None = None
    gift_wrapping_type: Literal["NAVY", "RED"] | None = None

    shipping_email: str | None = None
    delivery_note_type: Literal["NOT_INCLUDE_PII", "NONE"]
    price_on_delivery_note: bool
    message: str

    suspend: bool
    cash_on_delivery: bool
    backorder_if_unavailable: bool
    apply_rule: bool
    allocate_priority: int

    items: list[ShipmentItem] = Field(min_length=1)
    sender: SenderAddress


class DomesticShipmentRequest(BaseShipmentRequest):
    """Shipment to a Japanese address."""

    international: Literal[False] = False
    recipient: DomesticRecipient
    delivery_carrier: DeliveryCarrier
    delivery_method: DeliveryMethod
    delivery_time_slot: DeliveryTimeSlot | None = None


class InternationalShipmentRequest(BaseShipmentRequest):
    """Shipment to an overseas address."""

    international: Literal[True] = True
    recipient: InternationalRecipient
    delivery_service: DeliveryService
    currency_code: str
    insurance: bool
    purpose: ShipmentPurpose


# Narrowed by the literal `international` field
ShipmentRequest = DomesticShipmentRequest | InternationalShipmentRequest


class CurrencyConversion(BaseModel):
    """Audit record of the USD to JPY conversion."""

    model_config = ConfigDict(populate_by_name=True)

    original_usd: float = Field(serialization_alias="originalUSD")
    converted_jpy: int = Field(serialization_alias="convertedJPY")
    exchange_rate: float = Field(serialization_alias="exchangeRate")


class ConversionMetadata(BaseModel):
    """Metadata returned alongside a converted payload."""

    model_config = ConfigDict(populate_by_name=True)

    invoice_id: str = Field(serialization_alias="invoiceId")
    shipping_type: Literal["domestic", "international"] = Field(serialization_alias="shippingType")
    currency_conversion: CurrencyConversion = Field(serialization_alias="currencyConversion")
    item_count: int = Field(serialization_alias="itemCount")
    processing_time: str = Field(serialization_alias="processingTime")


class ConversionResult(BaseModel):
    """Converted payload plus its metadata."""

    payload: ShipmentRequest
    metadata: ConversionMetadata


class ValidationIssue(BaseModel):
    """A single validation error or warning."""

    field: str
    message: str
    value: Any = None
    suggestion: str | None = None


class ValidationReport(BaseModel):
    """Outcome of checking an invoice and address against the provider contract."""

    is_valid: bool = Field(serialization_alias="isValid")
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)

    @property
    def error_messages(self) -> list[str]:
        """Flatten errors into '<field>: <message>' strings."""
        return [f"{issue.field}: {issue.message}" for issue in self.errors]


ShipmentErrorType = Literal[
    "API_ERROR",
    "NETWORK_ERROR",
    "AUTH_ERROR",
    "VALIDATION_ERROR",
    "TIMEOUT_ERROR",
    "PROTOCOL_ERROR",
]


class RequestDetails(BaseModel):
    """Where and when a provider call was made."""

    url: str
    method: str
    processing_time: str = Field(serialization_alias="processingTime")
    timestamp: str


class ShipmentApiResponse(BaseModel):
    """Provider response body for a created shipment."""

    model_config = ConfigDict(extra="allow")

    id: str
    identifier: str
    order_no: str
    status: str


class ShipmentApiError(BaseModel):
    """Classified provider call failure."""

    type: ShipmentErrorType
    message: str
    status_code: int | None = None
    field_errors: dict[str, Any] | None = None
    details: Any = None


class ShipmentApiSuccess(BaseModel):
    """Successful provider call."""

    success: Literal[True] = True
    data: ShipmentApiResponse
    request_details: RequestDetails
    raw_response: dict[str, Any] | None = None


class ShipmentApiFailure(BaseModel):
    """Failed provider call, captured as data."""

    success: Literal[False] = False
    error: ShipmentApiError
    request_details: RequestDetails
    raw_response: dict[str, Any] | None = None


ShipmentApiResult = ShipmentApiSuccess | ShipmentApiFailure


class ShipmentSubmitRequest(BaseModel):
    """Request body for POST /shipments."""

    model_config = ConfigDict(populate_by_name=True)

    invoice_id: str = Field(alias="invoiceId", min_length=1, description="Invoice to ship")
    validate_only: bool = Field(default=False, alias="validateOnly", description="Validate and convert only")
    include_debug_info: bool = Field(
        default=False,
        alias="includeDebugInfo",
        description="Include payload and raw provider response",
    )


class ShipmentErrorBody(BaseModel):
    """Error section of a shipment submission result."""

    type: str
    message: str
    details: Any = None
    troubleshooting: list[str] = Field(default_factory=list)


class ShipmentSubmissionData(BaseModel):
    """Success section of a shipment submission result."""

    shipment_response: dict[str, Any] | None = Field(default=None, serialization_alias="shipmentResponse")
    conversion_metadata: ConversionMetadata = Field(serialization_alias="conversionMetadata")
    request_details: RequestDetails | None = Field(default=None, serialization_alias="requestDetails")


class ShipmentSubmissionResult(BaseModel):
    """Response for the direct shipment trigger."""

    success: bool
    invoice_id: str = Field(serialization_alias="invoiceId")
    message: str
    data: ShipmentSubmissionData | None = None
    error: ShipmentErrorBody | None = None
    debug_info: dict[str, Any] | None = Field(default=None, serialization_alias="debugInfo")
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class AutoShipmentResult(BaseModel):
    """Outcome of the automatic shipment triggered after payment."""

    success: bool
    invoice_id: str
    shipment_id: str | None = None
    skipped: bool = False
    error: str | None = None
