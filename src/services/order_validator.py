"""Mandatory-field checks for an invoice and its shipping address."""

from numbers import Real
from typing import Any

from src.schemas.shipment import ValidationIssue, ValidationReport
from src.services.fulfillment_constants import MAX_ITEMS

RECIPIENT_REQUIRED_FIELDS = ("name", "address1", "postcode", "phone")
INTERNATIONAL_REQUIRED_FIELDS = ("region_code", "city")
DOMESTIC_REQUIRED_FIELDS = ("prefecture",)
RECIPIENT_OPTIONAL_TEXT_FIELDS = ("address2", "company", "division", "state")


def _is_positive_number(value: Any) -> bool:
    # bool is an int subclass but never a valid amount or quantity
    return isinstance(value, Real) and not isinstance(value, bool) and value > 0


def _is_positive_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _text_problem(value: Any) -> str | None:
    """Describe why a required text field is unusable, or None if it is fine."""
    if _is_blank(value):
        return "is required"
    if not isinstance(value, str):
        return "must be a string"
    return None


def validate_shipment_order(invoice: dict[str, Any] | None, address: dict[str, Any] | None) -> ValidationReport:
    """Check an invoice and resolved address against OpenLogi's required fields.

    Every check runs so that a single call reports all defects. The function
    never raises; malformed input is reported as errors.

    Args:
        invoice: Invoice document.
        address: Resolved shipping address (snapshot or default user address).

    Returns:
        ValidationReport: Errors block shipment, warnings do not.
    """
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    def error(field: str, message: str, value: Any = None) -> None:
        errors.append(ValidationIssue(field=field, message=message, value=value))

    invoice = invoice if isinstance(invoice, dict) else {}
    address = address if isinstance(address, dict) else {}

    # Invoice
    if problem := _text_problem(invoice.get("id")):
        error("id", f"Invoice id {problem}", invoice.get("id"))
    if problem := _text_problem(invoice.get("sessionId")):
        error("sessionId", f"Session reference {problem}", invoice.get("sessionId"))
    amount = invoice.get("amount_usd")
    if not _is_positive_number(amount):
        error("amount_usd", "Amount must be a positive number", amount)

    # Cart
    cart = invoice.get("cartSnapshot")
    if not isinstance(cart, dict):
        error("cartSnapshot", "Cart snapshot is required")
        cart = {}

    items = cart.get("items")
    if not isinstance(items, list) or not items:
        error("cartSnapshot.items", "Cart items must be a non-empty list")
    else:
        if len(items) > MAX_ITEMS:
            error("cartSnapshot.items", f"Too many items: {len(items)} (max: {MAX_ITEMS})", len(items))
        for index, item in enumerate(items):
            item = item if isinstance(item, dict) else {}
            if problem := _text_problem(item.get("id")):
                error(f"cartSnapshot.items[{index}].id", f"Item id {problem}", item.get("id"))
            quantity = item.get("quantity")
            if not _is_positive_integer(quantity):
                error(f"cartSnapshot.items[{index}].quantity", "Quantity must be a positive integer", quantity)

    if cart.get("subtotal") is None:
        warnings.append(
            ValidationIssue(
                field="cartSnapshot.subtotal",
                message="Cart subtotal is missing",
                suggestion="Subtotal will be sent as 0",
            )
        )

    # Address
    if address.get("shippingFee") is None:
        warnings.append(
            ValidationIssue(
                field="shippingFee",
                message="Shipping fee is missing",
                suggestion="Delivery charge will be sent as 0",
            )
        )

    shipping_request = address.get("shippingRequest")
    if not isinstance(shipping_request, dict):
        error("shippingRequest", "Address has no shippingRequest")
        return ValidationReport(is_valid=False, errors=errors, warnings=warnings)

    international = shipping_request.get("international")
    if not isinstance(international, bool):
        error("shippingRequest.international", "International flag must be a boolean", international)

    recipient = shipping_request.get("recipient")
    if not isinstance(recipient, dict):
        error("shippingRequest.recipient", "Recipient information is required")
        return ValidationReport(is_valid=False, errors=errors, warnings=warnings)

    for field in RECIPIENT_REQUIRED_FIELDS:
        if problem := _text_problem(recipient.get(field)):
            error(f"recipient.{field}", f"Recipient {field} {problem}", recipient.get(field))

    if international is True:
        for field in INTERNATIONAL_REQUIRED_FIELDS:
            if problem := _text_problem(recipient.get(field)):
                error(
                    f"recipient.{field}",
                    f"Recipient {field} {problem} for international shipping",
                    recipient.get(field),
                )
    elif international is False:
        for field in DOMESTIC_REQUIRED_FIELDS:
            if problem := _text_problem(recipient.get(field)):
                error(
                    f"recipient.{field}",
                    f"Recipient {field} {problem} for domestic shipping",
                    recipient.get(field),
                )

    for field in RECIPIENT_OPTIONAL_TEXT_FIELDS:
        value = recipient.get(field)
        if value is not None and not isinstance(value, str):
            error(f"recipient.{field}", f"Recipient {field} must be a string", value)

    return ValidationReport(is_valid=not errors, errors=errors, warnings=warnings)
