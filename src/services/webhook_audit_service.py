"""Forensic audit trail for inbound payment webhooks."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from supabase import Client

from src.core.config import get_settings
from src.core.resilience import best_effort
from src.core.supabase import get_supabase_client

logger = logging.getLogger(__name__)

AUDIT_TABLE = "secure_webhook_logs"


def mask_secret(secret: str, visible: int = 8) -> str:
    """Keep only a short prefix of a secret for logs."""
    return f"{secret[:visible]}***" if secret else ""


class WebhookAuditLog:
    """Writes one audit record per webhook verification or processing outcome."""

    def __init__(self, supabase_client: Client | None = None) -> None:
        """Initialize audit log.

        Args:
            supabase_client: Optional Supabase client for testing.
        """
        self._supabase_client = supabase_client
        self.settings = get_settings()

    @property
    def supabase(self) -> Client:
        """Get Supabase client."""
        if self._supabase_client is None:
            self._supabase_client = get_supabase_client()
        return self._supabase_client

    async def _insert(self, record: dict[str, Any]) -> str:
        self.supabase.table(self.settings.table_name(AUDIT_TABLE)).insert(record).execute()
        return record["id"]

    async def record(
        self,
        *,
        signature_valid: bool,
        payload: dict[str, Any] | None,
        invoice_id: str | None,
        status: str | None,
        processed_action: str,
        processing_ms: float,
        error_message: str | None = None,
        request_meta: dict[str, Any] | None = None,
    ) -> str | None:
        """Persist an audit record.

        The write is best-effort: an audit failure is logged and never
        changes the outcome of the webhook it describes.

        Returns:
            str | None: Audit document id, or None if the write failed.
        """
        received_at = datetime.now(timezone.utc)
        stamp = received_at.strftime("%Y-%m-%dT%H-%M-%S-%fZ") + "-" + uuid.uuid4().hex[:6]
        doc_id = f"SECURE-{stamp}" if signature_valid else f"SECURE-ERROR-{stamp}"

        record = {
            "id": doc_id,
            "received_at": received_at.isoformat(),
            "webhook_data": payload,
            "verification_result": {
                "signatureValid": signature_valid,
                "invoiceId": invoice_id,
                "status": status,
                "processedAction": processed_action,
                "errorMessage": error_message,
            },
            "source": "opennode-verified" if signature_valid else "opennode-security-error",
            "request": request_meta or {},
            "metadata": {
                "processingTime": f"{processing_ms:.0f}ms",
                "success": signature_valid,
                "apiKeyUsed": mask_secret(self.settings.opennode_api_key),
            },
        }

        saved = await best_effort(
            lambda: self._insert(record),
            "save webhook audit log",
            invoice_id=invoice_id,
        )
        if saved:
            logger.info("Webhook audit log saved: %s (signature_valid=%s)", doc_id, signature_valid)
        return saved
