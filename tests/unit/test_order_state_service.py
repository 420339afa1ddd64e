"""Unit tests for OrderStateService."""

from typing import Any

import pytest

from src.api.middleware.error_handler import NotFoundError
from src.services.order_state_service import OrderStateService


@pytest.fixture
def store(fake_supabase: Any, sample_invoice: dict) -> Any:
    return fake_supabase(
        invoices=[dict(sample_invoice)],
        users=[{"id": "U1", "cart": [{"id": "P1", "quantity": 2}], "address": []}],
        products=[{"id": "P1", "stock": 10}, {"id": "P2", "stock": 0}],
    )


@pytest.fixture
def service(store: Any, make_settings) -> OrderStateService:
    return OrderStateService(supabase_client=store, settings=make_settings())


class TestProcessPaymentSuccess:
    """Tests for process_payment_success."""

    @pytest.mark.asyncio
    async def test_pending_invoice_is_paid(self, service: OrderStateService, store: Any) -> None:
        applied = await service.process_payment_success("ORD-1", {"id": "ORD-1", "status": "paid"})

        assert applied is True
        invoice = store.tables["invoices"].rows["ORD-1"]
        assert invoice["status"] == "redirect"
        assert invoice["paidAt"]
        assert invoice["webhook_data"] == {"id": "ORD-1", "status": "paid"}
        assert store.tables["users"].rows["U1"]["cart"] == []
        assert store.tables["users"].rows["U1"]["lastPurchaseAt"]
        assert store.tables["products"].rows["P1"]["stock"] == 8
        assert store.tables["products"].rows["P2"]["stock"] == -1

    @pytest.mark.asyncio
    async def test_transition_is_conditional_on_read_status(
        self, service: OrderStateService, store: Any
    ) -> None:
        await service.process_payment_success("ORD-1", {})

        values, filters = store.tables["invoices"].updates[0]
        assert values["status"] == "redirect"
        assert ("eq", "status", "pending") in filters

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["paid", "redirect"])
    async def test_already_paid_is_noop(
        self, service: OrderStateService, store: Any, status: str
    ) -> None:
        store.tables["invoices"].rows["ORD-1"]["status"] = status

        applied = await service.process_payment_success("ORD-1", {})

        assert applied is False
        assert store.tables["invoices"].updates == []
        assert store.tables["products"].rows["P1"]["stock"] == 10
        assert store.tables["users"].rows["U1"]["cart"] == [{"id": "P1", "quantity": 2}]

    @pytest.mark.asyncio
    async def test_second_delivery_does_not_decrement_twice(
        self, service: OrderStateService, store: Any
    ) -> None:
        await service.process_payment_success("ORD-1", {})
        applied = await service.process_payment_success("ORD-1", {})

        assert applied is False
        assert store.tables["products"].rows["P1"]["stock"] == 8

    @pytest.mark.asyncio
    async def test_lost_race_applies_no_side_effects(
        self, service: OrderStateService, store: Any, sample_invoice: dict
    ) -> None:
        stale = dict(sample_invoice)
        store.tables["invoices"].rows["ORD-1"]["status"] = "redirect"

        async def stale_read(invoice_id: str) -> dict:
            return stale

        service.get_invoice = stale_read  # type: ignore[method-assign]

        applied = await service.process_payment_success("ORD-1", {})

        assert applied is False
        assert store.tables["products"].rows["P1"]["stock"] == 10

    @pytest.mark.asyncio
    async def test_missing_invoice_raises_not_found(self, service: OrderStateService, store: Any) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await service.process_payment_success("ORD-404", {})

        assert exc_info.value.details == {"invoiceId": "ORD-404"}
        assert store.tables["products"].rows["P1"]["stock"] == 10

    @pytest.mark.asyncio
    async def test_missing_product_does_not_stop_others(
        self, service: OrderStateService, store: Any
    ) -> None:
        del store.tables["products"].rows["P1"]

        await service.process_payment_success("ORD-1", {})

        assert store.tables["products"].rows["P2"]["stock"] == -1

    @pytest.mark.asyncio
    async def test_uses_collection_prefix(self, fake_supabase: Any, make_settings, sample_invoice: dict) -> None:
        prefixed = fake_supabase(**{"dev-invoices": [dict(sample_invoice)], "dev-products": [{"id": "P1", "stock": 5}]})
        service = OrderStateService(supabase_client=prefixed, settings=make_settings(collection_prefix="dev-"))

        applied = await service.process_payment_success("ORD-1", {})

        assert applied is True
        assert prefixed.tables["dev-invoices"].rows["ORD-1"]["status"] == "redirect"
        assert prefixed.tables["dev-products"].rows["P1"]["stock"] == 3


class TestOtherTransitions:
    """Tests for expiry and generic status updates."""

    @pytest.mark.asyncio
    async def test_expired(self, service: OrderStateService, store: Any) -> None:
        assert await service.process_payment_expired("ORD-1", {"status": "expired"}) is True

        invoice = store.tables["invoices"].rows["ORD-1"]
        assert invoice["status"] == "expired"
        assert invoice["expiredAt"]
        _, filters = store.tables["invoices"].updates[0]
        assert ("eq", "status", "pending") in filters

    @pytest.mark.asyncio
    async def test_expired_missing_invoice(self, service: OrderStateService) -> None:
        with pytest.raises(NotFoundError):
            await service.process_payment_expired("ORD-404", {})

    @pytest.mark.asyncio
    async def test_generic_status_overwrite(self, service: OrderStateService, store: Any) -> None:
        assert await service.update_invoice_status("ORD-1", "processing", {"status": "processing"}) is True

        assert store.tables["invoices"].rows["ORD-1"]["status"] == "processing"

    @pytest.mark.asyncio
    async def test_generic_status_missing_invoice(self, service: OrderStateService) -> None:
        with pytest.raises(NotFoundError):
            await service.update_invoice_status("ORD-404", "processing", {})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("paid_status", ["paid", "redirect"])
    async def test_paid_invoice_ignores_late_events(
        self, service: OrderStateService, store: Any, paid_status: str
    ) -> None:
        store.tables["invoices"].rows["ORD-1"]["status"] = paid_status

        assert await service.process_payment_expired("ORD-1", {}) is False
        assert await service.update_invoice_status("ORD-1", "processing", {}) is False

        assert store.tables["invoices"].rows["ORD-1"]["status"] == paid_status
        assert store.tables["invoices"].updates == []

    @pytest.mark.asyncio
    async def test_paid_processing_paid_decrements_once(self, service: OrderStateService, store: Any) -> None:
        await service.process_payment_success("ORD-1", {})
        await service.update_invoice_status("ORD-1", "processing", {})
        applied = await service.process_payment_success("ORD-1", {})

        assert applied is False
        assert store.tables["products"].rows["P1"]["stock"] == 8
        assert store.tables["products"].rows["P2"]["stock"] == -1

    @pytest.mark.asyncio
    async def test_paid_expired_paid_decrements_once(self, service: OrderStateService, store: Any) -> None:
        await service.process_payment_success("ORD-1", {})
        await service.process_payment_expired("ORD-1", {})
        applied = await service.process_payment_success("ORD-1", {})

        assert applied is False
        assert store.tables["invoices"].rows["ORD-1"]["status"] == "redirect"
        assert store.tables["products"].rows["P1"]["stock"] == 8

    @pytest.mark.asyncio
    async def test_payment_landing_after_read_is_not_overwritten(
        self, service: OrderStateService, store: Any, sample_invoice: dict
    ) -> None:
        stale = dict(sample_invoice)
        store.tables["invoices"].rows["ORD-1"]["status"] = "redirect"

        async def stale_read(invoice_id: str) -> dict:
            return stale

        service.get_invoice = stale_read  # type: ignore[method-assign]

        assert await service.process_payment_expired("ORD-1", {}) is False
        assert store.tables["invoices"].rows["ORD-1"]["status"] == "redirect"


class TestResolveShippingAddress:
    """Tests for resolve_shipping_address."""

    @pytest.mark.asyncio
    async def test_snapshot_address_wins(
        self, service: OrderStateService, sample_invoice: dict, domestic_address: dict
    ) -> None:
        invoice = {**sample_invoice, "shippingSnapshot": {"shippingAddress": domestic_address}}

        assert await service.resolve_shipping_address(invoice) == domestic_address

    @pytest.mark.asyncio
    async def test_falls_back_to_default_user_address(
        self,
        service: OrderStateService,
        store: Any,
        sample_invoice: dict,
        international_address: dict,
    ) -> None:
        other = {**international_address, "id": "addr-0", "isDefault": False}
        store.tables["users"].rows["U1"]["address"] = [other, international_address]

        assert await service.resolve_shipping_address(sample_invoice) == international_address

    @pytest.mark.asyncio
    async def test_no_default_address(self, service: OrderStateService, sample_invoice: dict) -> None:
        with pytest.raises(NotFoundError, match="Default address not found"):
            await service.resolve_shipping_address(sample_invoice)

    @pytest.mark.asyncio
    async def test_missing_user(self, service: OrderStateService, sample_invoice: dict) -> None:
        with pytest.raises(NotFoundError, match="User data not found"):
            await service.resolve_shipping_address({**sample_invoice, "userId": "U404"})

    @pytest.mark.asyncio
    async def test_missing_user_id(self, service: OrderStateService, sample_invoice: dict) -> None:
        invoice = {k: v for k, v in sample_invoice.items() if k != "userId"}

        with pytest.raises(NotFoundError):
            await service.resolve_shipping_address(invoice)


class TestShipmentOutcome:
    """Tests for shipment outcome recording."""

    @pytest.mark.asyncio
    async def test_success_recorded_once(self, service: OrderStateService, store: Any) -> None:
        assert await service.record_shipment_success("ORD-1", "SHP-1", "waiting") is True
        assert await service.record_shipment_success("ORD-1", "SHP-2", "waiting") is False

        invoice = store.tables["invoices"].rows["ORD-1"]
        assert invoice["shipmentId"] == "SHP-1"
        assert invoice["openlogiStatus"] == "success"
        assert invoice["openlogiProviderStatus"] == "waiting"

    @pytest.mark.asyncio
    async def test_failure_recorded(self, service: OrderStateService, store: Any) -> None:
        await service.record_shipment_failure("ORD-1", "Address and postcode mismatch")

        invoice = store.tables["invoices"].rows["ORD-1"]
        assert invoice["openlogiStatus"] == "failed"
        assert invoice["openlogiError"] == "Address and postcode mismatch"
        assert "shipmentId" not in invoice

    @pytest.mark.asyncio
    async def test_recording_failures_are_swallowed(self, service: OrderStateService, store: Any) -> None:
        store.tables["invoices"].fail_writes = True

        assert await service.record_shipment_success("ORD-1", "SHP-1", "waiting") is False
        await service.record_shipment_failure("ORD-1", "boom")
