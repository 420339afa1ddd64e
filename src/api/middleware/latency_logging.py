"""Request latency logging middleware."""

import logging
import time
from typing import Callable

from fastapi import Request, Response

logger = logging.getLogger(__name__)

# Thresholds for log levels (in milliseconds)
SLOW_REQUEST_THRESHOLD_MS = 1000
VERY_SLOW_MULTIPLIER = 3

# Webhook and shipment calls wait on OpenLogi, which may take up to its own timeout
PROVIDER_BOUND_PREFIXES = ("/api/v1/webhooks", "/api/v1/shipments")
PROVIDER_SLOW_THRESHOLD_MS = 10000

QUIET_PATHS = ("/health", "/health/ready")


def _slow_threshold(path: str) -> float:
    if path.startswith(PROVIDER_BOUND_PREFIXES):
        return PROVIDER_SLOW_THRESHOLD_MS
    return SLOW_REQUEST_THRESHOLD_MS


async def latency_logging_middleware(request: Request, call_next: Callable) -> Response:
    """Log method, path, status and latency for every request.

    Health probes are logged at debug level. Server errors log at error
    level and slow requests are flagged with a warning.

    Args:
        request: The incoming request.
        call_next: The next middleware/handler in the chain.

    Returns:
        Response: The response from the handler.
    """
    start_time = time.perf_counter()
    method = request.method
    path = request.url.path

    response = None
    try:
        response = await call_next(request)
        return response
    finally:
        latency_ms = (time.perf_counter() - start_time) * 1000
        status_code = response.status_code if response else 500
        log_data = {
            "method": method,
            "path": path,
            "status_code": status_code,
            "latency_ms": round(latency_ms, 2),
        }
        log_msg = "%s %s - %s - %.2fms"
        args = (method, path, status_code, latency_ms)
        threshold = _slow_threshold(path)

        if path in QUIET_PATHS:
            logger.debug(log_msg, *args, extra=log_data)
        elif status_code >= 500:
            logger.error(log_msg, *args, extra=log_data)
        elif latency_ms > threshold * VERY_SLOW_MULTIPLIER:
            logger.warning("VERY SLOW REQUEST: " + log_msg, *args, extra=log_data)
        elif latency_ms > threshold:
            logger.warning("SLOW REQUEST: " + log_msg, *args, extra=log_data)
        elif status_code >= 400:
            logger.warning(log_msg, *args, extra=log_data)
        else:
            logger.info(log_msg, *args, extra=log_data)
