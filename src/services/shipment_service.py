"""Invoice shipment orchestration: validate, convert, submit, record."""

import logging
import time
from typing import Any

from fastapi import status

from src.api.middleware.error_handler import APIError, NotFoundError, ValidationError
from src.schemas.shipment import (
    AutoShipmentResult,
    ShipmentApiFailure,
    ShipmentErrorBody,
    ShipmentSubmissionData,
    ShipmentSubmissionResult,
)
from src.services.fulfillment_constants import SHIPMENT_TROUBLESHOOTING
from src.services.openlogi_client import OpenLogiClient
from src.services.openlogi_errors import simplify_openlogi_error
from src.services.order_state_service import OrderStateService
from src.services.order_validator import validate_shipment_order
from src.services.shipment_converter import ShipmentConverter

logger = logging.getLogger(__name__)

AUTO_SHIPMENT_FAILURE_MESSAGE = "Shipment processing error"


class ShipmentService:
    """Submits invoices to OpenLogi and records the outcome."""

    def __init__(
        self,
        order_state: OrderStateService | None = None,
        converter: ShipmentConverter | None = None,
        client: OpenLogiClient | None = None,
    ) -> None:
        """Initialize shipment service.

        Args:
            order_state: Optional order state service for testing.
            converter: Optional converter for testing.
            client: Optional OpenLogi client for testing.
        """
        self.order_state = order_state or OrderStateService()
        self.converter = converter or ShipmentConverter()
        self.client = client or OpenLogiClient()

    @staticmethod
    def failure_status_code(failure: ShipmentApiFailure) -> int:
        """HTTP status for a provider failure returned by the direct trigger."""
        if failure.error.type == "AUTH_ERROR":
            return status.HTTP_401_UNAUTHORIZED
        if failure.error.type == "VALIDATION_ERROR":
            return status.HTTP_400_BAD_REQUEST
        return status.HTTP_200_OK

    async def submit_invoice_shipment(
        self,
        invoice_id: str,
        validate_only: bool = False,
        include_debug_info: bool = False,
    ) -> tuple[ShipmentSubmissionResult, int]:
        """Validate, convert and submit an invoice shipment.

        An invoice that already holds a shipment id is reported as shipped
        without calling the provider.

        Args:
            invoice_id: Invoice to ship.
            validate_only: Stop after validation and conversion.
            include_debug_info: Attach payload and raw provider response.

        Returns:
            tuple: Submission result and the HTTP status code to answer with.

        Raises:
            NotFoundError: If the invoice, user or default address is missing.
            ValidationError: If the invoice or address fails validation.
            ConversionError: If the payload cannot be built.
        """
        start_time = time.perf_counter()

        invoice = await self.order_state.get_invoice(invoice_id)
        if not invoice:
            raise NotFoundError("Invoice not found", details={"invoiceId": invoice_id})

        logger.info(
            "Invoice %s retrieved for shipment (status=%s, amount_usd=%s)",
            invoice_id,
            invoice.get("status"),
            invoice.get("amount_usd"),
        )

        if invoice.get("shipmentId"):
            logger.info("Invoice %s already shipped as %s; skipping submission", invoice_id, invoice["shipmentId"])
            return (
                ShipmentSubmissionResult(
                    success=True,
                    invoice_id=invoice_id,
                    message="Invoice already shipped - no API call made",
                    data=None,
                    debug_info={"shipmentId": invoice["shipmentId"]},
                ),
                status.HTTP_200_OK,
            )

        address = await self.order_state.resolve_shipping_address(invoice)

        report = validate_shipment_order(invoice, address)
        if not report.is_valid:
            raise ValidationError(
                "Invoice failed shipment validation",
                details=report.model_dump(mode="json", by_alias=True),
            )
        for warning in report.warnings:
            logger.warning("Shipment validation warning for %s: %s - %s", invoice_id, warning.field, warning.message)

        conversion = self.converter.convert(invoice, address)
        debug_info: dict[str, Any] | None = None
        if include_debug_info:
            debug_info = {
                "shipmentPayload": conversion.payload.model_dump(mode="json", exclude_none=True),
                "validationWarnings": [w.model_dump(mode="json") for w in report.warnings],
            }

        if validate_only:
            return (
                ShipmentSubmissionResult(
                    success=True,
                    invoice_id=invoice_id,
                    message="Validation completed successfully - No API call made",
                    data=ShipmentSubmissionData(conversion_metadata=conversion.metadata),
                    debug_info=debug_info,
                ),
                status.HTTP_200_OK,
            )

        result = await self.client.submit(conversion.payload, include_raw_response=include_debug_info)
        conversion.metadata.processing_time = f"{(time.perf_counter() - start_time) * 1000:.0f}ms"
        if include_debug_info and result.raw_response is not None:
            debug_info = {**(debug_info or {}), "apiResponse": result.raw_response}

        if result.success:
            await self.order_state.record_shipment_success(invoice_id, result.data.id, result.data.status)
            logger.info(
                "Shipment submission completed for %s: %s (%s)",
                invoice_id,
                result.data.id,
                conversion.metadata.processing_time,
            )
            return (
                ShipmentSubmissionResult(
                    success=True,
                    invoice_id=invoice_id,
                    message="OpenLogi shipment submission successful",
                    data=ShipmentSubmissionData(
                        shipment_response=result.data.model_dump(mode="json"),
                        conversion_metadata=conversion.metadata,
                        request_details=result.request_details,
                    ),
                    debug_info=debug_info,
                ),
                status.HTTP_200_OK,
            )

        simple_error = simplify_openlogi_error(result.error)
        await self.order_state.record_shipment_failure(invoice_id, simple_error)
        logger.warning("Shipment submission failed for %s: %s (%s)", invoice_id, result.error.type, simple_error)
        return (
            ShipmentSubmissionResult(
                success=False,
                invoice_id=invoice_id,
                message="OpenLogi API submission failed",
                error=ShipmentErrorBody(
                    type=result.error.type,
                    message=simple_error,
                    details=result.error.details,
                    troubleshooting=SHIPMENT_TROUBLESHOOTING,
                ),
                debug_info=debug_info,
            ),
            self.failure_status_code(result),
        )

    async def trigger_auto_shipment(self, invoice_id: str) -> AutoShipmentResult:
        """Ship an invoice after payment without ever raising.

        Skips invoices that are missing or already hold a shipment id. Every
        failure is recorded on the invoice with a short message.
        """
        try:
            invoice = await self.order_state.get_invoice(invoice_id)
            if not invoice:
                logger.warning("Auto shipment skipped, invoice not found: %s", invoice_id)
                return AutoShipmentResult(success=False, invoice_id=invoice_id, skipped=True, error="Invoice not found")

            if invoice.get("shipmentId"):
                logger.info("Auto shipment skipped, invoice %s already shipped", invoice_id)
                return AutoShipmentResult(
                    success=True,
                    invoice_id=invoice_id,
                    shipment_id=invoice["shipmentId"],
                    skipped=True,
                )

            address = await self.order_state.resolve_shipping_address(invoice)
            report = validate_shipment_order(invoice, address)
            if not report.is_valid:
                message = f"Invalid {report.errors[0].field}"
                logger.warning("Auto shipment validation failed for %s: %s", invoice_id, report.error_messages)
                await self.order_state.record_shipment_failure(invoice_id, message)
                return AutoShipmentResult(success=False, invoice_id=invoice_id, error=message)

            conversion = self.converter.convert(invoice, address)
            result = await self.client.submit(conversion.payload)

            if result.success:
                await self.order_state.record_shipment_success(invoice_id, result.data.id, result.data.status)
                return AutoShipmentResult(success=True, invoice_id=invoice_id, shipment_id=result.data.id)

            simple_error = simplify_openlogi_error(result.error)
            await self.order_state.record_shipment_failure(invoice_id, simple_error)
            return AutoShipmentResult(success=False, invoice_id=invoice_id, error=simple_error)

        except APIError as e:
            logger.warning("Auto shipment failed for %s: %s - %s", invoice_id, e.error_type, e.message)
            await self.order_state.record_shipment_failure(invoice_id, e.message)
            return AutoShipmentResult(success=False, invoice_id=invoice_id, error=e.message)
        except Exception as e:
            logger.exception("Auto shipment error for %s: %s", invoice_id, str(e))
            await self.order_state.record_shipment_failure(invoice_id, AUTO_SHIPMENT_FAILURE_MESSAGE)
            return AutoShipmentResult(success=False, invoice_id=invoice_id, error=AUTO_SHIPMENT_FAILURE_MESSAGE)
