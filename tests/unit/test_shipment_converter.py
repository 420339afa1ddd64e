"""Unit tests for invoice to OpenLogi payload conversion."""

import copy

import pytest

from src.api.middleware.error_handler import ConversionError
from src.schemas.shipment import DomesticShipmentRequest, InternationalShipmentRequest
from src.services.shipment_converter import ConverterConfig, ShipmentConverter, convert_usd_to_jpy


@pytest.fixture
def converter() -> ShipmentConverter:
    """Converter with the default 150 JPY/USD rate."""
    return ShipmentConverter(ConverterConfig())


@pytest.fixture
def unit_rate_converter() -> ShipmentConverter:
    """Converter with a 1:1 rate so amounts are easy to follow."""
    return ShipmentConverter(ConverterConfig(usd_to_jpy_rate=1))


class TestConvertUsdToJpy:
    """Tests for convert_usd_to_jpy."""

    def test_whole_amount(self) -> None:
        assert convert_usd_to_jpy(45, 150) == 6750

    def test_rounds_half_up(self) -> None:
        assert convert_usd_to_jpy(1.23, 150) == 185
        assert convert_usd_to_jpy("10.005", 150) == 1501

    def test_rounds_down_below_half(self) -> None:
        assert convert_usd_to_jpy(1.22, 150) == 183

    def test_zero_amount(self) -> None:
        assert convert_usd_to_jpy(0, 150) == 0

    @pytest.mark.parametrize(
        "amount,rate",
        [(-1, 150), ("abc", 150), (10, 0), (10, -5), (True, 150)],
    )
    def test_invalid_input_raises(self, amount, rate) -> None:
        with pytest.raises(ConversionError):
            convert_usd_to_jpy(amount, rate)


class TestShipmentConverter:
    """Tests for ShipmentConverter.convert."""

    def test_domestic_totals_and_items(
        self, unit_rate_converter: ShipmentConverter, sample_invoice: dict, domestic_address: dict
    ) -> None:
        result = unit_rate_converter.convert(sample_invoice, domestic_address)
        payload = result.payload

        assert isinstance(payload, DomesticShipmentRequest)
        assert payload.identifier == "ORD-1"
        assert payload.order_no == "S-1"
        assert payload.subtotal_amount == 30
        assert payload.delivery_charge == 15
        assert payload.total_amount == 45
        assert [(item.code, item.quantity) for item in payload.items] == [("P1", 2), ("P2", 1)]
        assert payload.recipient.prefecture == "東京都"

    def test_domestic_defaults(
        self, converter: ShipmentConverter, sample_invoice: dict, domestic_address: dict
    ) -> None:
        payload = converter.convert(sample_invoice, domestic_address).payload

        assert payload.international is False
        assert payload.warehouse == "OPL"
        assert payload.delivery_carrier == "YAMATO"
        assert payload.delivery_method == "HOME_BOX"
        assert payload.subtotal_amount == 4500
        assert payload.delivery_charge == 2250
        assert payload.total_amount == 6750
        assert payload.sender.postcode == "170-0013"

    def test_domestic_carrier_from_shipping_request(
        self, converter: ShipmentConverter, sample_invoice: dict, domestic_address: dict
    ) -> None:
        address = copy.deepcopy(domestic_address)
        address["shippingRequest"]["delivery_carrier"] = "SAGAWA"
        address["shippingRequest"]["delivery_time_slot"] = "AM"

        payload = converter.convert(sample_invoice, address).payload

        assert payload.delivery_carrier == "SAGAWA"
        assert payload.delivery_time_slot == "AM"

    def test_international_defaults(
        self, converter: ShipmentConverter, sample_invoice: dict, international_address: dict
    ) -> None:
        result = converter.convert(sample_invoice, international_address)
        payload = result.payload

        assert isinstance(payload, InternationalShipmentRequest)
        assert payload.international is True
        assert payload.delivery_service == "JAPANPOST-EMS"
        assert payload.currency_code == "JPY"
        assert payload.insurance is True
        assert payload.purpose == "SALE_OF_GOODS"
        assert payload.recipient.region_code == "US"
        assert result.metadata.shipping_type == "international"

    def test_metadata(self, converter: ShipmentConverter, sample_invoice: dict, domestic_address: dict) -> None:
        metadata = converter.convert(sample_invoice, domestic_address).metadata

        assert metadata.invoice_id == "ORD-1"
        assert metadata.shipping_type == "domestic"
        assert metadata.item_count == 2
        assert metadata.currency_conversion.original_usd == 45
        assert metadata.currency_conversion.converted_jpy == 6750
        assert metadata.currency_conversion.exchange_rate == 150
        assert metadata.processing_time.endswith("ms")

    def test_metadata_serializes_with_camel_case(
        self, converter: ShipmentConverter, sample_invoice: dict, domestic_address: dict
    ) -> None:
        dumped = converter.convert(sample_invoice, domestic_address).metadata.model_dump(by_alias=True)

        assert dumped["invoiceId"] == "ORD-1"
        assert dumped["currencyConversion"]["convertedJPY"] == 6750

    def test_product_code_mapping(self, sample_invoice: dict, domestic_address: dict) -> None:
        converter = ShipmentConverter(ConverterConfig(product_code_map={"P1": "OL-PROTEIN-1"}))

        payload = converter.convert(sample_invoice, domestic_address).payload

        assert [item.code for item in payload.items] == ["OL-PROTEIN-1", "P2"]

    def test_payload_dump_omits_unset_optionals(
        self, converter: ShipmentConverter, sample_invoice: dict, domestic_address: dict
    ) -> None:
        body = converter.convert(sample_invoice, domestic_address).payload.model_dump(
            mode="json", exclude_none=True
        )

        assert "gift_wrapping_type" not in body
        assert "delivery_time_slot" not in body
        assert body["international"] is False
        assert body["items"] == [{"code": "P1", "quantity": 2}, {"code": "P2", "quantity": 1}]

    def test_missing_session_raises(
        self, converter: ShipmentConverter, sample_invoice: dict, domestic_address: dict
    ) -> None:
        invoice = copy.deepcopy(sample_invoice)
        del invoice["sessionId"]

        with pytest.raises(ConversionError):
            converter.convert(invoice, domestic_address)

    def test_unknown_carrier_raises(
        self, converter: ShipmentConverter, sample_invoice: dict, domestic_address: dict
    ) -> None:
        address = copy.deepcopy(domestic_address)
        address["shippingRequest"]["delivery_carrier"] = "PIGEON"

        with pytest.raises(ConversionError) as exc_info:
            converter.convert(sample_invoice, address)

        assert exc_info.value.status_code == 500

    def test_zero_total_raises(
        self, converter: ShipmentConverter, sample_invoice: dict, domestic_address: dict
    ) -> None:
        invoice = copy.deepcopy(sample_invoice)
        invoice["cartSnapshot"]["subtotal"] = 0
        address = copy.deepcopy(domestic_address)
        address["shippingFee"] = 0

        with pytest.raises(ConversionError, match="Total amount out of range"):
            converter.convert(invoice, address)
