"""Invoice to OpenLogi shipment payload conversion.

The converter is a pure mapping: it reads an invoice and a resolved shipping
address and builds the provider request. It performs no I/O and does not
decide whether the data is complete; run ``validate_shipment_order`` first.

Amounts are stored in USD and sent in integer JPY. Every conversion rounds to
the nearest yen with halves rounded up.
"""

import logging
import time
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from src.api.middleware.error_handler import ConversionError
from src.core.config import Settings, get_settings
from src.schemas.shipment import (
    ConversionMetadata,
    ConversionResult,
    CurrencyConversion,
    DomesticShipmentRequest,
    InternationalShipmentRequest,
    SenderAddress,
    ShipmentItem,
    ShipmentRequest,
)
from src.services.fulfillment_constants import (
    DEFAULT_DELIVERY_CARRIER,
    DEFAULT_DELIVERY_METHOD,
    DEFAULT_USD_TO_JPY_RATE,
    DELIVERY_NOTE_DEFAULTS,
    INTERNATIONAL_DEFAULTS,
    MAX_AMOUNT_JPY,
    MAX_MESSAGE_LENGTH,
    MIN_AMOUNT_JPY,
    PACKAGING_DEFAULTS,
    SENDER_ADDRESS,
    SYSTEM_DEFAULTS,
    WAREHOUSE_CODE,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConverterConfig:
    """Values the converter needs that are not derived from the invoice."""

    usd_to_jpy_rate: float = DEFAULT_USD_TO_JPY_RATE
    sender: dict[str, str] = field(default_factory=lambda: dict(SENDER_ADDRESS))
    product_code_map: dict[str, str] = field(default_factory=dict)
    warehouse: str = WAREHOUSE_CODE

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConverterConfig":
        """Build the converter configuration from application settings."""
        return cls(
            usd_to_jpy_rate=settings.usd_to_jpy_rate,
            product_code_map=dict(settings.openlogi_product_code_map),
        )


def get_converter_config() -> ConverterConfig:
    """Get the converter configuration for the current settings."""
    return ConverterConfig.from_settings(get_settings())


def convert_usd_to_jpy(usd_amount: Any, rate: Any) -> int:
    """Convert a USD amount to whole yen, rounding half up.

    Raises:
        ConversionError: If the amount is negative or not numeric, or the rate is not positive.
    """
    if isinstance(usd_amount, bool) or isinstance(rate, bool):
        raise ConversionError("Currency conversion failed: boolean is not an amount")
    try:
        amount = Decimal(str(usd_amount))
        exchange_rate = Decimal(str(rate))
    except (InvalidOperation, ValueError) as e:
        raise ConversionError(f"Currency conversion failed: {usd_amount!r} at rate {rate!r}") from e

    if not amount.is_finite() or amount < 0:
        raise ConversionError(f"Invalid USD amount: {usd_amount}")
    if not exchange_rate.is_finite() or exchange_rate <= 0:
        raise ConversionError(f"Invalid exchange rate: {rate}")

    return int((amount * exchange_rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class ShipmentConverter:
    """Builds OpenLogi shipment requests from invoices."""

    def __init__(self, config: ConverterConfig | None = None) -> None:
        """Initialize converter.

        Args:
            config: Optional converter configuration; defaults to settings-derived values.
        """
        self.config = config or get_converter_config()

    def map_product_code(self, product_id: str) -> str:
        """Translate an internal product id into an OpenLogi product code.

        Ids without an explicit mapping are used as-is.
        """
        return self.config.product_code_map.get(product_id, product_id)

    def to_jpy(self, usd_amount: Any) -> int:
        """Convert using the configured rate."""
        return convert_usd_to_jpy(usd_amount, self.config.usd_to_jpy_rate)

    def convert(self, invoice: dict[str, Any], address: dict[str, Any]) -> ConversionResult:
        """Convert an invoice and address into a shipment request.

        Args:
            invoice: Invoice document.
            address: Resolved shipping address.

        Returns:
            ConversionResult: Provider payload and conversion metadata.

        Raises:
            ConversionError: If the data cannot be shaped into a valid request.
        """
        start_time = time.perf_counter()
        invoice_id = invoice.get("id")

        try:
            shipping_request = address["shippingRequest"]
            cart = invoice["cartSnapshot"]
            base = self._build_base(invoice, address)

            if shipping_request.get("international"):
                payload: ShipmentRequest = self._build_international(base, shipping_request)
                logger.info(
                    "Generated international shipping request for invoice %s (service=%s, region=%s)",
                    invoice_id,
                    payload.delivery_service,
                    payload.recipient.region_code,
                )
            else:
                payload = self._build_domestic(base, shipping_request)
                logger.info(
                    "Generated domestic shipping request for invoice %s (carrier=%s, prefecture=%s)",
                    invoice_id,
                    payload.delivery_carrier,
                    payload.recipient.prefecture,
                )
        except (KeyError, TypeError, AttributeError) as e:
            logger.error("OpenLogi conversion failed for invoice %s: %s", invoice_id, str(e))
            raise ConversionError(f"Failed to convert data to OpenLogi format: missing {e}") from e
        except PydanticValidationError as e:
            logger.error("OpenLogi conversion failed for invoice %s: %s", invoice_id, str(e))
            raise ConversionError(
                "Failed to convert data to OpenLogi format",
                details=e.errors(include_url=False, include_context=False),
            ) from e

        self._check_limits(payload)

        processing_time = f"{(time.perf_counter() - start_time) * 1000:.0f}ms"
        metadata = ConversionMetadata(
            invoice_id=str(invoice_id),
            shipping_type="international" if payload.international else "domestic",
            currency_conversion=CurrencyConversion(
                original_usd=invoice["amount_usd"],
                converted_jpy=self.to_jpy(invoice["amount_usd"]),
                exchange_rate=self.config.usd_to_jpy_rate,
            ),
            item_count=len(cart["items"]),
            processing_time=processing_time,
        )

        logger.info("OpenLogi conversion completed for invoice %s in %s", invoice_id, processing_time)
        return ConversionResult(payload=payload, metadata=metadata)

    def _build_base(self, invoice: dict[str, Any], address: dict[str, Any]) -> dict[str, Any]:
        cart = invoice["cartSnapshot"]

        subtotal = self.to_jpy(cart.get("subtotal") or 0)
        delivery_charge = self.to_jpy(address.get("shippingFee") or 0)
        handling_charge = SYSTEM_DEFAULTS["handling_charge"]
        discount_amount = SYSTEM_DEFAULTS["discount_amount"]

        return {
            "identifier": invoice["id"],
            "order_no": invoice["sessionId"],
            "warehouse": self.config.warehouse,
            "subtotal_amount": subtotal,
            "delivery_charge": delivery_charge,
            "handling_charge": handling_charge,
            "discount_amount": discount_amount,
            "total_amount": subtotal + delivery_charge + handling_charge - discount_amount,
            "items": [
                ShipmentItem(code=self.map_product_code(item["id"]), quantity=item["quantity"])
                for item in cart["items"]
            ],
            "sender": SenderAddress(**self.config.sender),
            **PACKAGING_DEFAULTS,
            **DELIVERY_NOTE_DEFAULTS,
            **{k: v for k, v in SYSTEM_DEFAULTS.items() if k not in ("handling_charge", "discount_amount")},
        }

    def _build_domestic(self, base: dict[str, Any], shipping_request: dict[str, Any]) -> DomesticShipmentRequest:
        return DomesticShipmentRequest(
            **base,
            recipient=shipping_request["recipient"],
            delivery_carrier=shipping_request.get("delivery_carrier") or DEFAULT_DELIVERY_CARRIER,
            delivery_method=shipping_request.get("delivery_method") or DEFAULT_DELIVERY_METHOD,
            delivery_time_slot=shipping_request.get("delivery_time_slot"),
        )

    def _build_international(
        self, base: dict[str, Any], shipping_request: dict[str, Any]
    ) -> InternationalShipmentRequest:
        insurance = shipping_request.get("insurance")
        return InternationalShipmentRequest(
            **base,
            recipient=shipping_request["recipient"],
            delivery_service=shipping_request.get("delivery_service") or INTERNATIONAL_DEFAULTS["delivery_service"],
            currency_code=INTERNATIONAL_DEFAULTS["currency_code"],
            insurance=INTERNATIONAL_DEFAULTS["insurance"] if insurance is None else insurance,
            purpose=shipping_request.get("purpose") or INTERNATIONAL_DEFAULTS["purpose"],
        )

    @staticmethod
    def _check_limits(payload: ShipmentRequest) -> None:
        if not MIN_AMOUNT_JPY <= payload.total_amount <= MAX_AMOUNT_JPY:
            raise ConversionError(f"Total amount out of range: {payload.total_amount}")
        if len(payload.message) > MAX_MESSAGE_LENGTH:
            raise ConversionError(
                f"Message too long: {len(payload.message)} characters (max: {MAX_MESSAGE_LENGTH})"
            )
