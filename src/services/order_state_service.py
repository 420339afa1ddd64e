"""Invoice status transitions and shipment outcome bookkeeping."""

import logging
from datetime import datetime, timezone
from typing import Any

from supabase import Client

from src.api.middleware.error_handler import NotFoundError
from src.core.config import Settings, get_settings
from src.core.resilience import best_effort, retry_read
from src.core.supabase import get_supabase_client
from src.models.invoice import PAID_STATUSES, CartItem, Invoice, User, UserAddress

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class OrderStateService:
    """Reads and mutates invoice, user and product documents.

    Every transition re-reads the invoice before writing. Payment and shipment
    writes are conditional on the state that was read, so two concurrent
    deliveries of the same event cannot both apply side effects.
    """

    def __init__(
        self,
        supabase_client: Client | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize order state service.

        Args:
            supabase_client: Optional Supabase client for testing.
            settings: Optional settings for testing.
        """
        self._supabase_client = supabase_client
        self.settings = settings or get_settings()

    @property
    def supabase(self) -> Client:
        """Get Supabase client."""
        if self._supabase_client is None:
            self._supabase_client = get_supabase_client()
        return self._supabase_client

    @property
    def invoices_table(self) -> str:
        return self.settings.table_name("invoices")

    @property
    def users_table(self) -> str:
        return self.settings.table_name("users")

    @property
    def products_table(self) -> str:
        return self.settings.table_name("products")

    @retry_read
    async def _fetch(self, table: str, document_id: str) -> dict[str, Any] | None:
        response = (
            self.supabase.table(table)
            .select("*")
            .eq("id", document_id)
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    async def get_invoice(self, invoice_id: str) -> Invoice | None:
        """Get an invoice by id.

        Returns:
            Invoice | None: The invoice document or None if not found.
        """
        return await self._fetch(self.invoices_table, invoice_id)

    async def get_user(self, user_id: str) -> User | None:
        """Get a user by id."""
        return await self._fetch(self.users_table, user_id)

    async def resolve_shipping_address(self, invoice: Invoice) -> UserAddress:
        """Find the address to ship an invoice to.

        The address captured in the invoice's shipping snapshot wins; otherwise
        the user's default address is used.

        Raises:
            NotFoundError: If no user id, user or default address exists.
        """
        snapshot_address = (invoice.get("shippingSnapshot") or {}).get("shippingAddress")
        if snapshot_address:
            logger.info(
                "Using address from shippingSnapshot for invoice %s (has_shipping_request=%s)",
                invoice.get("id"),
                bool(snapshot_address.get("shippingRequest")),
            )
            return snapshot_address

        user_id = invoice.get("userId")
        if not user_id:
            raise NotFoundError("Missing userId in invoice data")

        user = await self.get_user(user_id)
        if not user:
            raise NotFoundError("User data not found", details={"userId": user_id})

        default_address = next((a for a in user.get("address") or [] if a.get("isDefault")), None)
        if not default_address:
            raise NotFoundError(f"Default address not found for user: {user_id}", details={"userId": user_id})

        logger.info("Using default address of user %s for invoice %s", user_id, invoice.get("id"))
        return default_address

    def _conditional_update(self, invoice_id: str, expected_status: str | None, update: dict[str, Any]) -> bool:
        query = self.supabase.table(self.invoices_table).update(update).eq("id", invoice_id)
        if expected_status is None:
            query = query.is_("status", "null")
        else:
            query = query.eq("status", expected_status)
        response = query.execute()
        return bool(response.data)

    async def process_payment_success(self, invoice_id: str, webhook_data: dict[str, Any]) -> bool:
        """Apply a confirmed payment to an invoice.

        Moves the invoice to ``redirect``, clears the buyer's cart and
        decrements stock for every cart item. A repeated delivery for an
        invoice that is already paid does nothing.

        Args:
            invoice_id: Invoice id.
            webhook_data: Raw webhook payload kept for audit.

        Returns:
            bool: True if the payment side effects were applied by this call.

        Raises:
            NotFoundError: If the invoice does not exist.
        """
        invoice = await self.get_invoice(invoice_id)
        if not invoice:
            logger.warning("Invoice not found for payment processing: %s", invoice_id)
            raise NotFoundError(f"Invoice not found: {invoice_id}", details={"invoiceId": invoice_id})

        current_status = invoice.get("status")
        if current_status in PAID_STATUSES:
            logger.info("Invoice %s already %s; skipping payment processing", invoice_id, current_status)
            return False

        now = _now()
        applied = self._conditional_update(
            invoice_id,
            current_status,
            {
                "status": "redirect",
                "paidAt": now,
                "webhook_data": webhook_data,
                "updatedAt": now,
            },
        )
        if not applied:
            logger.info("Invoice %s changed concurrently; payment already processed by another delivery", invoice_id)
            return False

        logger.info("Invoice %s marked as redirect (paid)", invoice_id)

        user_id = invoice.get("userId")
        if user_id:
            await self.clear_user_cart(user_id)

        items = (invoice.get("cartSnapshot") or {}).get("items") or []
        logger.info("Updating stock for %d item(s) of invoice %s", len(items), invoice_id)
        if items:
            await self.decrement_stock(items)

        return True

    async def clear_user_cart(self, user_id: str) -> None:
        """Empty the user's active cart and stamp the purchase time."""
        self.supabase.table(self.users_table).update(
            {"cart": [], "lastPurchaseAt": _now()}
        ).eq("id", user_id).execute()
        logger.info("User cart cleared after payment: %s", user_id)

    async def decrement_stock(self, items: list[CartItem]) -> None:
        """Decrement stock for each cart item.

        Each item is isolated: a missing product or a failed write is logged
        and the remaining items are still processed. Stock may go negative.
        """
        for item in items:
            product_id = item.get("id")
            try:
                product = await self._fetch(self.products_table, product_id)
                if not product:
                    logger.warning("Product not found for stock update: %s", product_id)
                    continue

                previous_stock = product.get("stock") or 0
                new_stock = previous_stock - item.get("quantity", 0)
                self.supabase.table(self.products_table).update(
                    {"stock": new_stock, "updatedAt": _now()}
                ).eq("id", product_id).execute()

                logger.info(
                    "Product stock updated: %s %d -> %d",
                    product_id,
                    previous_stock,
                    new_stock,
                )
                if new_stock < 0:
                    logger.warning("Product stock is negative: %s (%d)", product_id, new_stock)
            except Exception as e:
                logger.error("Product stock update failed for %s: %s", product_id, str(e))

    async def _transition_unpaid(self, invoice_id: str, update: dict[str, Any]) -> bool:
        """Write a non-payment transition unless the invoice is already paid.

        The write is conditional on the status that was read, so a payment
        landing between the read and the write is never overwritten.

        Raises:
            NotFoundError: If the invoice does not exist.
        """
        invoice = await self.get_invoice(invoice_id)
        if not invoice:
            raise NotFoundError(f"Invoice not found: {invoice_id}", details={"invoiceId": invoice_id})

        current_status = invoice.get("status")
        if current_status in PAID_STATUSES:
            logger.warning(
                "Invoice %s already %s; ignoring late %s event",
                invoice_id,
                current_status,
                update["status"],
            )
            return False

        applied = self._conditional_update(invoice_id, current_status, update)
        if not applied:
            logger.info("Invoice %s changed concurrently; %s not applied", invoice_id, update["status"])
        return applied

    async def process_payment_expired(self, invoice_id: str, webhook_data: dict[str, Any]) -> bool:
        """Mark an invoice as expired.

        Returns:
            bool: True if the invoice was updated, False if it is already paid.

        Raises:
            NotFoundError: If the invoice does not exist.
        """
        now = _now()
        applied = await self._transition_unpaid(
            invoice_id,
            {
                "status": "expired",
                "expiredAt": now,
                "webhook_data": webhook_data,
                "updatedAt": now,
            },
        )
        if applied:
            logger.info("Invoice %s marked as expired", invoice_id)
        return applied

    async def update_invoice_status(self, invoice_id: str, status: str, webhook_data: dict[str, Any]) -> bool:
        """Store any status without a dedicated transition.

        Returns:
            bool: True if the invoice was updated, False if it is already paid.

        Raises:
            NotFoundError: If the invoice does not exist.
        """
        applied = await self._transition_unpaid(
            invoice_id,
            {
                "status": status,
                "webhook_data": webhook_data,
                "updatedAt": _now(),
            },
        )
        if applied:
            logger.info("Invoice %s status updated to %s", invoice_id, status)
        return applied

    async def record_shipment_success(self, invoice_id: str, shipment_id: str, provider_status: str) -> bool:
        """Record a created shipment on the invoice.

        The write only applies while the invoice has no shipment id, so an
        existing id is never overwritten. Failures are logged and swallowed.

        Returns:
            bool: True if the shipment id was stored.
        """

        async def write() -> bool:
            now = _now()
            response = (
                self.supabase.table(self.invoices_table)
                .update(
                    {
                        "shipmentId": shipment_id,
                        "autoShippedAt": now,
                        "openlogiStatus": "success",
                        "openlogiShipmentId": shipment_id,
                        "openlogiProviderStatus": provider_status,
                        "openlogiLastAttempt": now,
                        "updatedAt": now,
                    }
                )
                .eq("id", invoice_id)
                .is_("shipmentId", "null")
                .execute()
            )
            if not response.data:
                logger.warning("Invoice %s already holds a shipment id; %s not stored", invoice_id, shipment_id)
                return False
            logger.info("Shipment %s recorded on invoice %s", shipment_id, invoice_id)
            return True

        return bool(await best_effort(write, "record shipment success", invoice_id=invoice_id))

    async def record_shipment_failure(self, invoice_id: str, error: str) -> None:
        """Record a failed shipment attempt. Failures are logged and swallowed."""

        async def write() -> None:
            now = _now()
            self.supabase.table(self.invoices_table).update(
                {
                    "openlogiStatus": "failed",
                    "openlogiError": error,
                    "openlogiLastAttempt": now,
                    "updatedAt": now,
                }
            ).eq("id", invoice_id).execute()
            logger.info("Shipment failure recorded on invoice %s: %s", invoice_id, error)

        await best_effort(write, "record shipment failure", invoice_id=invoice_id)
