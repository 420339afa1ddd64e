"""Payment webhook handling: verify, transition, optionally ship."""

import logging
import time
from dataclasses import dataclass
from typing import Any

from src.api.middleware.error_handler import ConfigurationError, NotFoundError
from src.core.config import Settings, get_settings
from src.schemas.shipment import AutoShipmentResult
from src.services.order_state_service import OrderStateService
from src.services.shipment_service import AUTO_SHIPMENT_FAILURE_MESSAGE, ShipmentService
from src.services.webhook_audit_service import WebhookAuditLog
from src.services.webhook_verifier import WebhookVerifier

logger = logging.getLogger(__name__)


@dataclass
class WebhookOutcome:
    """Result of processing one webhook delivery."""

    invoice_id: str
    status: str
    processed_action: str
    processing_ms: float
    auto_shipment_enabled: bool
    shipment: AutoShipmentResult | None = None
    amount: Any = None
    fee: Any = None

    @property
    def processing_time(self) -> str:
        return f"{self.processing_ms:.0f}ms"


class PaymentWebhookService:
    """Drives a verified payment event through the invoice lifecycle.

    Shipment is attempted only after the payment transition has been written,
    and a shipment failure never undoes or blocks that transition.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        order_state: OrderStateService | None = None,
        shipment_service: ShipmentService | None = None,
        audit_log: WebhookAuditLog | None = None,
        verifier: WebhookVerifier | None = None,
    ) -> None:
        """Initialize payment webhook service.

        Args:
            settings: Optional settings for testing.
            order_state: Optional order state service for testing.
            shipment_service: Optional shipment service for testing.
            audit_log: Optional audit log for testing.
            verifier: Optional verifier for testing.
        """
        self.settings = settings or get_settings()
        self.audit_log = audit_log or WebhookAuditLog()
        self.order_state = order_state or OrderStateService(settings=self.settings)
        self._shipment_service = shipment_service
        self._verifier = verifier

    @property
    def shipment_service(self) -> ShipmentService:
        """Get shipment service, created on first use."""
        if self._shipment_service is None:
            self._shipment_service = ShipmentService(order_state=self.order_state)
        return self._shipment_service

    @property
    def verifier(self) -> WebhookVerifier:
        """Get webhook verifier.

        Raises:
            ConfigurationError: If the OpenNode API key is not configured.
        """
        if self._verifier is None:
            if not self.settings.opennode_api_key:
                logger.error("OpenNode API key not configured")
                raise ConfigurationError("API key not configured")
            self._verifier = WebhookVerifier(self.settings.opennode_api_key, audit_log=self.audit_log)
        return self._verifier

    async def handle(self, payload: dict[str, Any], request_meta: dict[str, Any] | None = None) -> WebhookOutcome:
        """Process one webhook delivery.

        Args:
            payload: Webhook body.
            request_meta: Method and header details for the audit record.

        Returns:
            WebhookOutcome: What was done for this delivery.

        Raises:
            ConfigurationError: If the shared secret is missing.
            MissingFieldsError: If required fields are absent.
            SignatureMismatchError: If the signature is invalid.
            NotFoundError: If the invoice does not exist.
        """
        start_time = time.perf_counter()
        event = await self.verifier.verify(payload, request_meta)
        auto_enabled = self.settings.auto_shipment_enabled
        shipment: AutoShipmentResult | None = None

        try:
            if event.status == "paid":
                applied = await self.order_state.process_payment_success(event.order_id, event.raw_payload)
                processed_action = "payment_completed" if applied else "payment_already_processed"
                logger.info(
                    "Payment processed for invoice %s (applied=%s, amount=%s, fee=%s)",
                    event.order_id,
                    applied,
                    event.amount,
                    event.fee,
                )

                if auto_enabled:
                    shipment = await self._auto_ship(event.order_id)
                    if shipment.success and not shipment.skipped:
                        processed_action = "payment_completed_and_shipped"
                    elif not shipment.success:
                        processed_action = (
                            "payment_completed_shipment_error"
                            if shipment.error == AUTO_SHIPMENT_FAILURE_MESSAGE
                            else "payment_completed_shipment_failed"
                        )
                else:
                    logger.info("Automatic shipment disabled; invoice %s not shipped", event.order_id)

            elif event.status == "expired":
                applied = await self.order_state.process_payment_expired(event.order_id, event.raw_payload)
                processed_action = "payment_expired" if applied else "status_ignored_expired"

            else:
                applied = await self.order_state.update_invoice_status(
                    event.order_id, event.status, event.raw_payload
                )
                processed_action = f"status_updated_{event.status}" if applied else f"status_ignored_{event.status}"

        except NotFoundError as e:
            await self.audit_log.record(
                signature_valid=True,
                payload=event.raw_payload,
                invoice_id=event.order_id,
                status=event.status,
                processed_action="invoice_not_found",
                processing_ms=(time.perf_counter() - start_time) * 1000,
                error_message=e.message,
                request_meta=request_meta,
            )
            raise

        outcome = WebhookOutcome(
            invoice_id=event.order_id,
            status=event.status,
            processed_action=processed_action,
            processing_ms=(time.perf_counter() - start_time) * 1000,
            auto_shipment_enabled=auto_enabled,
            shipment=shipment,
            amount=event.amount,
            fee=event.fee,
        )

        await self.audit_log.record(
            signature_valid=True,
            payload=event.raw_payload,
            invoice_id=event.order_id,
            status=event.status,
            processed_action=processed_action,
            processing_ms=outcome.processing_ms,
            request_meta=request_meta,
        )

        logger.info(
            "Webhook processing completed for invoice %s: %s in %s",
            event.order_id,
            processed_action,
            outcome.processing_time,
        )
        return outcome

    async def record_rejected_payload(
        self, error_message: str, request_meta: dict[str, Any] | None, processing_ms: float
    ) -> None:
        """Audit a delivery whose body could not be read, before any verification."""
        logger.warning("Rejected unreadable webhook body: %s", error_message)
        await self.audit_log.record(
            signature_valid=False,
            payload=None,
            invoice_id=None,
            status=None,
            processed_action="invalid_payload",
            processing_ms=processing_ms,
            error_message=error_message,
            request_meta=request_meta,
        )

    async def _auto_ship(self, invoice_id: str) -> AutoShipmentResult:
        logger.info("Starting automatic shipment for invoice %s", invoice_id)
        result = await self.shipment_service.trigger_auto_shipment(invoice_id)
        if result.success:
            logger.info("Automatic shipment for %s: %s", invoice_id, result.shipment_id)
        else:
            logger.warning("Automatic shipment failed for %s: %s", invoice_id, result.error)
        return result
