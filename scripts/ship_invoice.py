#!/usr/bin/env python
"""Validate or submit the OpenLogi shipment for a paid invoice.

This script:
1. Checks that the OpenLogi API is reachable with the configured key
2. Loads the invoice and resolves its shipping address
3. Validates and converts the invoice into a shipment request
4. Submits the shipment when --submit is given, otherwise stops after conversion

Usage:
    python scripts/ship_invoice.py ORD-123
    python scripts/ship_invoice.py ORD-123 --submit

Requirements:
    - SUPABASE_URL and SUPABASE_SECRET_KEY environment variables must be set
    - OPENLOGI_API_KEY must be set to check connectivity or submit

Note:
    - An invoice that already holds a shipmentId is never submitted again
    - The outcome of a real submission is recorded on the invoice
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.api.middleware.error_handler import APIError
from src.core.config import get_settings
from src.services.openlogi_client import OpenLogiClient
from src.services.shipment_service import ShipmentService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def main(invoice_id: str, submit: bool) -> int:
    """Run the shipment for one invoice.

    Args:
        invoice_id: Invoice to ship.
        submit: Call the OpenLogi API instead of stopping after conversion.

    Returns:
        int: Process exit code.
    """
    settings = get_settings()
    logger.info("OpenLogi endpoint: %s", settings.openlogi_shipments_url)

    health = await OpenLogiClient().check_health()
    if not health["healthy"]:
        logger.error("OpenLogi API check failed: %s", health.get("error"))
        if submit:
            return 1

    try:
        result, status_code = await ShipmentService().submit_invoice_shipment(
            invoice_id,
            validate_only=not submit,
            include_debug_info=True,
        )
    except APIError as e:
        logger.error("%s: %s", e.error_type, e.message)
        if e.details:
            print(json.dumps(e.details, indent=2, ensure_ascii=False, default=str))
        return 1

    print(json.dumps(result.model_dump(mode="json", by_alias=True, exclude_none=True), indent=2, ensure_ascii=False))
    return 0 if result.success and status_code == 200 else 1


if __name__ == "__main__":
    args = [arg for arg in sys.argv[1:] if not arg.startswith("--")]
    if len(args) != 1:
        print("Usage: python scripts/ship_invoice.py <invoice_id> [--submit]")
        sys.exit(2)
    sys.exit(asyncio.run(main(args[0], submit="--submit" in sys.argv[1:])))
