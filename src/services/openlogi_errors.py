"""Short, user-safe messages for OpenLogi shipment failures."""

from typing import Any

from src.schemas.shipment import ShipmentApiError

# Provider field error key -> stable message, checked in order
FIELD_ERROR_MESSAGES: list[tuple[tuple[str, ...], str]] = [
    (("recipient.postcode",), "Address and postcode mismatch"),
    (("recipient.address1", "recipient.address2"), "Invalid address format"),
    (("recipient.name",), "Invalid recipient name"),
    (("recipient.phone",), "Invalid phone number format"),
    (("items", "items.0.code", "items.0.product_id"), "Invalid product information"),
]

MAX_MESSAGE_LENGTH = 50


def _field_errors(error: ShipmentApiError | dict[str, Any] | None) -> dict[str, Any] | None:
    if isinstance(error, ShipmentApiError):
        if error.field_errors:
            return error.field_errors
        details = error.details
    elif isinstance(error, dict):
        details = error.get("details")
        if isinstance(error.get("field_errors"), dict):
            return error["field_errors"]
    else:
        return None
    if isinstance(details, dict) and isinstance(details.get("errors"), dict):
        return details["errors"]
    return None


def _status_message(status_code: int) -> str | None:
    if status_code in (401, 403):
        return "Authentication error"
    if status_code == 422:
        return "Data validation error"
    if status_code == 500:
        return "OpenLogi server error"
    if 400 <= status_code < 500:
        return "Request error"
    if status_code > 500:
        return "Server error"
    return None


def simplify_openlogi_error(error: ShipmentApiError | dict[str, Any] | None) -> str:
    """Reduce a provider failure to a short message safe to store and show.

    Field errors win over status codes, which win over the raw message.

    Args:
        error: Classified provider error, or a plain dict with the same keys.

    Returns:
        str: Stable message, "Unknown error" when nothing is recognizable.
    """
    field_errors = _field_errors(error)
    if field_errors:
        for keys, message in FIELD_ERROR_MESSAGES:
            if any(key in field_errors for key in keys):
                return message
        return f"Invalid {next(iter(field_errors))}"

    if isinstance(error, ShipmentApiError):
        status_code, message = error.status_code, error.message
    elif isinstance(error, dict):
        status_code, message = error.get("status_code"), error.get("message")
    else:
        return "Unknown error"

    if isinstance(status_code, int):
        status_message = _status_message(status_code)
        if status_message:
            return status_message

    if isinstance(message, str) and message:
        if len(message) > MAX_MESSAGE_LENGTH:
            return message[: MAX_MESSAGE_LENGTH - 3] + "..."
        return message

    return "Unknown error"
