"""Webhook API routes for the payment processor."""

import json
import logging
import time
from typing import Any

from fastapi import APIRouter, Request, status

from src.api.middleware.error_handler import ValidationError
from src.schemas.webhook import AutoShipmentSummary, WebhookResponse
from src.services.payment_webhook_service import PaymentWebhookService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


async def _read_payload(request: Request) -> dict[str, Any]:
    """Read a flat webhook body sent as JSON or form data."""
    content_type = request.headers.get("content-type", "")
    if "application/x-www-form-urlencoded" in content_type or "multipart/form-data" in content_type:
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    body = await request.body()
    if not body:
        return {}
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        raise ValidationError("Webhook body is not valid JSON") from e
    if not isinstance(payload, dict):
        raise ValidationError("Webhook body must be a JSON object")
    return payload


@router.post(
    "/opennode",
    status_code=status.HTTP_200_OK,
    summary="Handle OpenNode payment webhooks",
    description="Verifies the HMAC signature, transitions the invoice and optionally submits the shipment.",
    responses={
        400: {"description": "Missing required verification fields"},
        401: {"description": "Signature mismatch"},
        404: {"description": "Invoice not found"},
        405: {"description": "Only POST is allowed"},
    },
)
async def opennode_webhook(request: Request) -> dict[str, Any]:
    """Handle OpenNode payment status callbacks.

    Handles:
    - paid: Marks the invoice paid, clears the cart, decrements stock and,
      when enabled, submits the shipment
    - expired: Marks the invoice expired
    - anything else: Stores the new status

    Late expired or other events for an invoice that is already paid are ignored.

    Args:
        request: FastAPI request object for reading the raw body and headers.

    Returns:
        dict: Processing summary.

    Raises:
        MissingFieldsError: 400 if id, hashed_order or status is missing.
        SignatureMismatchError: 401 if the signature is invalid.
        ValidationError: 400 if the body is not a JSON object.
        NotFoundError: 404 if the invoice does not exist.
    """
    start_time = time.perf_counter()
    request_meta = {
        "method": request.method,
        "contentType": request.headers.get("content-type"),
        "userAgent": request.headers.get("user-agent"),
    }
    logger.info("OpenNode webhook received (%s)", request_meta["contentType"])

    service = PaymentWebhookService()
    try:
        payload = await _read_payload(request)
    except ValidationError as e:
        await service.record_rejected_payload(e.message, request_meta, (time.perf_counter() - start_time) * 1000)
        raise

    outcome = await service.handle(payload, request_meta)

    shipment = outcome.shipment
    response = WebhookResponse(
        invoice_id=outcome.invoice_id,
        status=outcome.status,
        processed_action=outcome.processed_action,
        processing_time=outcome.processing_time,
        auto_shipment=AutoShipmentSummary(
            enabled=outcome.auto_shipment_enabled,
            attempted=shipment is not None,
            success=bool(shipment and shipment.success),
            shipment_id=shipment.shipment_id if shipment else None,
            error=shipment.error if shipment else None,
        ),
    )
    return response.model_dump(mode="json", by_alias=True)
