"""Direct shipment trigger for invoices."""

import json
import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from src.api.middleware.error_handler import ValidationError
from src.schemas.shipment import ShipmentSubmitRequest
from src.services.shipment_service import ShipmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shipments", tags=["shipments"])


@router.post(
    "",
    status_code=status.HTTP_200_OK,
    summary="Submit an invoice shipment to OpenLogi",
    description="Validates and converts the invoice, then submits it unless validateOnly is set.",
    responses={
        400: {"description": "Missing invoiceId, validation failure or provider validation error"},
        401: {"description": "Provider rejected the API key"},
        404: {"description": "Invoice, user or default address not found"},
    },
)
async def submit_shipment(request: Request) -> JSONResponse:
    """Submit the shipment for an invoice.

    Args:
        request: Request carrying {invoiceId, validateOnly?, includeDebugInfo?}.

    Returns:
        JSONResponse: Submission result with the provider response and conversion metadata.

    Raises:
        ValidationError: 400 if invoiceId is missing or the invoice fails validation.
        NotFoundError: 404 if the invoice or its address cannot be found.
    """
    try:
        body = await request.json()
        data = ShipmentSubmitRequest.model_validate(body)
    except (json.JSONDecodeError, PydanticValidationError) as e:
        raise ValidationError("invoiceId is required and must be a string") from e

    logger.info(
        "Processing shipment submission for %s (validate_only=%s, debug=%s)",
        data.invoice_id,
        data.validate_only,
        data.include_debug_info,
    )

    service = ShipmentService()
    result, status_code = await service.submit_invoice_shipment(
        data.invoice_id,
        validate_only=data.validate_only,
        include_debug_info=data.include_debug_info,
    )
    return JSONResponse(
        status_code=status_code,
        content=result.model_dump(mode="json", by_alias=True, exclude_none=True),
    )
