"""Fixed OpenLogi shipment defaults and validation limits."""

from typing import Literal

# Warehouse code assigned by OpenLogi
WAREHOUSE_CODE = "OPL"

DEFAULT_USD_TO_JPY_RATE = 150

# Company sender address printed on every shipment
SENDER_ADDRESS: dict[str, str] = {
    "postcode": "170-0013",
    "prefecture": "東京都",
    "address1": "豊島区東池袋1-34-5",
    "address2": "いちご東池袋ビル9F",
    "name": "BTC Flavor株式会社",
    "company": "BTC Flavor株式会社",
    "division": "配送部",
    "phone": "03-1234-5678",
}

# Packaging
PACKAGING_DEFAULTS = {
    "cushioning_unit": "ORDER",
    "cushioning_type": "BUBBLE_PACK",
    "gift_wrapping_unit": None,
    "gift_wrapping_type": None,
}

# Delivery note and notification
DELIVERY_NOTE_DEFAULTS = {
    "delivery_note_type": "NOT_INCLUDE_PII",
    "price_on_delivery_note": True,
    "message": "お買い上げありがとうございます。BTCプロテインをお楽しみください！",
    "shipping_email": None,
}

# Processing control
SYSTEM_DEFAULTS = {
    "suspend": False,
    "backorder_if_unavailable": True,
    "apply_rule": False,
    "allocate_priority": 50,
    "cash_on_delivery": False,
    "handling_charge": 0,
    "discount_amount": 0,
}

DEFAULT_DELIVERY_CARRIER = "YAMATO"
DEFAULT_DELIVERY_METHOD = "HOME_BOX"

INTERNATIONAL_DEFAULTS = {
    "delivery_service": "JAPANPOST-EMS",
    "currency_code": "JPY",
    "insurance": True,
    "purpose": "SALE_OF_GOODS",
}

DeliveryCarrier = Literal["YAMATO", "SAGAWA"]
DeliveryMethod = Literal["HOME_BOX", "POST_EXPRESS"]
DeliveryTimeSlot = Literal["AM", "12", "14", "16", "18", "19"]
DeliveryService = Literal[
    "SAGAWA-HIKYAKU-YU-PACKET",
    "SAGAWA-TAKUHAIBIN",
    "SAGAWA-COOLBIN",
    "YAMATO-NEKOPOSU",
    "YAMATO-TAKKYUBIN",
    "YAMATO-COOLBIN",
    "JAPANPOST-EMS",
    "JAPANPOST-EPACKET",
    "JAPANPOST-YU-PACKET",
    "FEDEX-PRIORITY",
    "FEDEX-CONNECT-PLUS",
    "DHL-EXPRESS",
]
ShipmentPurpose = Literal[
    "GIFT",
    "DOCUMENTS",
    "COMMERCIAL_SAMPLE",
    "SALE_OF_GOODS",
    "RETURNED_GOODS",
    "OTHERS",
]

# Limits
MAX_AMOUNT_JPY = 999_999_999
MIN_AMOUNT_JPY = 1
MAX_ITEMS = 100
MAX_MESSAGE_LENGTH = 500

# Hints returned to operators when the provider rejects a shipment
SHIPMENT_TROUBLESHOOTING = [
    "Check OpenLogi API key validity",
    "Verify product codes exist in OpenLogi",
    "Validate address format",
    "Check required parameters",
]
