"""Payment webhook response schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class AutoShipmentSummary(BaseModel):
    """Automatic shipment outcome reported back to the webhook sender."""

    model_config = ConfigDict(from_attributes=True)

    enabled: bool = Field(description="Whether automatic shipment is enabled")
    attempted: bool = Field(description="Whether a shipment was attempted for this delivery")
    success: bool = Field(default=False, description="Whether the shipment succeeded")
    shipment_id: str | None = Field(default=None, serialization_alias="shipmentId")
    error: str | None = Field(default=None, description="Short error message on failure")


class WebhookResponse(BaseModel):
    """Response returned to OpenNode after a processed webhook."""

    success: bool = Field(default=True)
    message: str = Field(default="Secure webhook processed successfully")
    invoice_id: str = Field(serialization_alias="invoiceId")
    status: str = Field(description="Payment status from the webhook")
    processed_action: str = Field(serialization_alias="processedAction")
    processing_time: str = Field(serialization_alias="processingTime")
    auto_shipment: AutoShipmentSummary = Field(serialization_alias="autoShipment")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
