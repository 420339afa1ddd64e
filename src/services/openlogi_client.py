"""OpenLogi shipment API client.

Submits a single shipment request and classifies the outcome. Failures are
returned as ``ShipmentApiFailure`` values rather than raised, so the caller
can record a failed outcome on the invoice. The client never retries: a
retried POST could create a duplicate shipment.
"""

import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any

import httpx

from src.core.config import Settings, get_settings
from src.schemas.shipment import (
    RequestDetails,
    ShipmentApiError,
    ShipmentApiFailure,
    ShipmentApiResponse,
    ShipmentApiResult,
    ShipmentApiSuccess,
    ShipmentErrorType,
    ShipmentRequest,
)

logger = logging.getLogger(__name__)

REQUIRED_RESPONSE_FIELDS = ("id", "identifier", "order_no", "status")

HEALTH_CHECK_PATH = "/api/items"
HEALTH_CHECK_TIMEOUT_SECONDS = 10.0


def classify_status(status_code: int) -> ShipmentErrorType:
    """Map a non-2xx HTTP status to an error type."""
    if status_code in (401, 403):
        return "AUTH_ERROR"
    if status_code in (400, 422):
        return "VALIDATION_ERROR"
    return "API_ERROR"


def _parse_body(response: httpx.Response) -> Any:
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except (json.JSONDecodeError, ValueError):
            logger.error("Failed to parse OpenLogi JSON response (status %d)", response.status_code)
            return response.text
    return response.text


class OpenLogiClient:
    """Stateless wrapper around the OpenLogi shipment endpoint."""

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize OpenLogi client.

        Args:
            settings: Optional settings; defaults to the cached application settings.
            http_client: Optional shared httpx client (used by tests to inject a transport).
        """
        self.settings = settings or get_settings()
        self._http_client = http_client

    @property
    def shipments_url(self) -> str:
        """Shipment creation endpoint."""
        return self.settings.openlogi_shipments_url

    def _headers(self, request_id: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-Api-Version": self.settings.openlogi_api_version,
            "Authorization": f"Bearer {self.settings.openlogi_api_key}",
            "User-Agent": self.settings.openlogi_user_agent,
            "X-Request-ID": request_id,
        }

    async def _post(self, url: str, body: dict[str, Any], headers: dict[str, str]) -> httpx.Response:
        timeout = httpx.Timeout(self.settings.openlogi_timeout_seconds)
        if self._http_client is not None:
            return await self._http_client.post(url, json=body, headers=headers, timeout=timeout)
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.post(url, json=body, headers=headers)

    async def submit(self, payload: ShipmentRequest, include_raw_response: bool = False) -> ShipmentApiResult:
        """Submit a shipment request.

        Args:
            payload: Converted shipment request.
            include_raw_response: Attach status and body of the provider response.

        Returns:
            ShipmentApiResult: Success with the provider id/status, or a classified failure.
        """
        start_time = time.perf_counter()
        timestamp = datetime.now(timezone.utc).isoformat()
        request_id = f"req_{uuid.uuid4().hex[:16]}"
        url = self.shipments_url

        def details() -> RequestDetails:
            return RequestDetails(
                url=url,
                method="POST",
                processing_time=f"{(time.perf_counter() - start_time) * 1000:.0f}ms",
                timestamp=timestamp,
            )

        if not self.settings.openlogi_api_key:
            logger.error("OpenLogi API key not configured")
            return ShipmentApiFailure(
                error=ShipmentApiError(type="AUTH_ERROR", message="OpenLogi API key not configured"),
                request_details=details(),
            )

        logger.info(
            "OpenLogi shipment request started: identifier=%s order_no=%s international=%s items=%d",
            payload.identifier,
            payload.order_no,
            payload.international,
            len(payload.items),
            extra={"request_id": request_id, "url": url},
        )

        try:
            response = await self._post(url, payload.model_dump(mode="json", exclude_none=True), self._headers(request_id))
        except httpx.TimeoutException as e:
            logger.error("OpenLogi shipment request timed out for %s: %s", payload.identifier, str(e))
            return ShipmentApiFailure(
                error=ShipmentApiError(
                    type="TIMEOUT_ERROR",
                    message=f"Request timed out after {self.settings.openlogi_timeout_seconds:g}s",
                ),
                request_details=details(),
            )
        except httpx.RequestError as e:
            logger.error("OpenLogi shipment request failed for %s: %s", payload.identifier, str(e))
            return ShipmentApiFailure(
                error=ShipmentApiError(type="NETWORK_ERROR", message=str(e) or type(e).__name__),
                request_details=details(),
            )

        body = _parse_body(response)
        raw = {"status": response.status_code, "body": body} if include_raw_response else None

        if response.is_success:
            missing = [f for f in REQUIRED_RESPONSE_FIELDS if not isinstance(body, dict) or not body.get(f)]
            if missing:
                logger.error(
                    "OpenLogi response for %s is missing required fields: %s",
                    payload.identifier,
                    ", ".join(missing),
                )
                return ShipmentApiFailure(
                    error=ShipmentApiError(
                        type="PROTOCOL_ERROR",
                        message=f"OpenLogi response missing required fields: {', '.join(missing)}",
                        status_code=response.status_code,
                        details=body,
                    ),
                    request_details=details(),
                    raw_response=raw,
                )

            data = ShipmentApiResponse.model_validate(
                {**body, **{f: str(body[f]) for f in REQUIRED_RESPONSE_FIELDS}}
            )
            request_details = details()
            logger.info(
                "OpenLogi shipment created for %s: id=%s status=%s (%s)",
                payload.identifier,
                data.id,
                data.status,
                request_details.processing_time,
            )
            return ShipmentApiSuccess(data=data, request_details=request_details, raw_response=raw)

        error_type = classify_status(response.status_code)
        message = None
        field_errors = None
        if isinstance(body, dict):
            message = body.get("message")
            if isinstance(body.get("errors"), dict):
                field_errors = body["errors"]

        logger.error(
            "OpenLogi shipment API error for %s: %d %s",
            payload.identifier,
            response.status_code,
            error_type,
            extra={"request_id": request_id, "response_body": body},
        )
        return ShipmentApiFailure(
            error=ShipmentApiError(
                type=error_type,
                message=message or f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
                field_errors=field_errors,
                details=body,
            ),
            request_details=details(),
            raw_response=raw,
        )

    async def check_health(self) -> dict[str, Any]:
        """Check that the OpenLogi API is reachable with the configured key.

        Returns:
            dict: 'healthy' boolean and optional 'error' message.
        """
        if not self.settings.openlogi_api_key:
            return {"healthy": False, "error": "OpenLogi API key not configured"}

        url = self.settings.openlogi_base_url.rstrip("/") + HEALTH_CHECK_PATH
        headers = self._headers(f"health_{uuid.uuid4().hex[:8]}")
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, headers=headers, timeout=HEALTH_CHECK_TIMEOUT_SECONDS)
            else:
                async with httpx.AsyncClient(timeout=HEALTH_CHECK_TIMEOUT_SECONDS) as client:
                    response = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            return {"healthy": False, "error": f"OpenLogi API health check failed: {e}"}

        if response.status_code == 200:
            return {"healthy": True}
        return {"healthy": False, "error": f"OpenLogi API responded with status {response.status_code}"}
