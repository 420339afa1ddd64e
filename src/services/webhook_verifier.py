"""OpenNode payment webhook verification.

OpenNode signs each callback with ``hashed_order``: the hex HMAC-SHA256 of the
charge id keyed by the merchant API key. Verification recomputes it and
compares in constant time. Missing fields and signature mismatches raise
different errors so the route can answer 400 and 401 respectively.
"""

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from src.api.middleware.error_handler import MissingFieldsError, SignatureMismatchError
from src.services.webhook_audit_service import WebhookAuditLog

logger = logging.getLogger(__name__)

ORDER_REFERENCE_FIELD = "id"
SIGNATURE_FIELD = "hashed_order"
STATUS_FIELD = "status"
REQUIRED_FIELDS = (ORDER_REFERENCE_FIELD, SIGNATURE_FIELD, STATUS_FIELD)


@dataclass
class VerifiedWebhook:
    """Normalized, authenticated webhook event."""

    order_id: str
    status: str
    raw_payload: dict[str, Any] = field(repr=False)
    amount: Any = None
    fee: Any = None


def compute_signature(order_id: str, secret: str) -> str:
    """Compute the expected hex HMAC-SHA256 signature for an order reference."""
    return hmac.new(secret.encode("utf-8"), order_id.encode("utf-8"), hashlib.sha256).hexdigest()


def signature_matches(order_id: str, received: str, secret: str) -> bool:
    """Compare a received signature with the expected one in constant time."""
    expected = compute_signature(order_id, secret)
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


class WebhookVerifier:
    """Authenticates inbound payment webhooks before any state change."""

    def __init__(self, secret: str, audit_log: WebhookAuditLog | None = None) -> None:
        """Initialize verifier.

        Args:
            secret: Shared secret (OpenNode API key).
            audit_log: Optional audit log; defaults to the Supabase-backed log.
        """
        self.secret = secret
        self.audit_log = audit_log or WebhookAuditLog()

    async def verify(
        self,
        payload: dict[str, Any],
        request_meta: dict[str, Any] | None = None,
    ) -> VerifiedWebhook:
        """Verify required fields and signature of a webhook payload.

        An audit record is written whether verification succeeds or fails.

        Args:
            payload: Flat webhook body.
            request_meta: Method and header details for the audit record.

        Returns:
            VerifiedWebhook: Normalized event.

        Raises:
            MissingFieldsError: If the order reference, signature or status is absent.
            SignatureMismatchError: If the signature does not match.
        """
        start_time = time.perf_counter()
        payload = payload if isinstance(payload, dict) else {}
        order_id = payload.get(ORDER_REFERENCE_FIELD)
        status = payload.get(STATUS_FIELD)

        logger.info(
            "Verifying webhook payload: invoice=%s status=%s has_signature=%s keys=%s",
            order_id,
            status,
            bool(payload.get(SIGNATURE_FIELD)),
            sorted(payload.keys()),
        )

        async def audit(valid: bool, action: str, error_message: str | None = None) -> None:
            await self.audit_log.record(
                signature_valid=valid,
                payload=payload,
                invoice_id=order_id if isinstance(order_id, str) else None,
                status=status if isinstance(status, str) else None,
                processed_action=action,
                processing_ms=(time.perf_counter() - start_time) * 1000,
                error_message=error_message,
                request_meta=request_meta,
            )

        missing = [f for f in REQUIRED_FIELDS if not isinstance(payload.get(f), str) or not payload.get(f)]
        if missing:
            error = MissingFieldsError(missing)
            logger.warning("%s: %s", error.message, ", ".join(missing))
            await audit(False, "verification_failed", error.message)
            raise error

        received = payload[SIGNATURE_FIELD]
        if not signature_matches(order_id, received, self.secret):
            error = SignatureMismatchError()
            logger.error(
                "Webhook signature verification failed for invoice %s (received %s...)",
                order_id,
                received[:16],
            )
            await audit(False, "verification_failed", error.message)
            raise error

        logger.info("Webhook signature verified for invoice %s", order_id)
        await audit(True, "verified")

        return VerifiedWebhook(
            order_id=order_id,
            status=status,
            raw_payload=payload,
            amount=payload.get("price"),
            fee=payload.get("fee"),
        )
