"""Global error handling middleware for consistent error responses."""

import logging
import traceback
from typing import Any, Callable

from fastapi import HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.core.config import get_settings
from src.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for errors answered with the standard error envelope.

    ``error_type`` is the stable discriminator clients branch on; ``details``
    and ``troubleshooting`` are passed through to the response body.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_type: str = "API_ERROR",
        details: Any = None,
        troubleshooting: list[str] | None = None,
    ) -> None:
        """Initialize API error.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code to return.
            error_type: Stable error discriminator for client handling.
            details: Optional additional error details.
            troubleshooting: Optional hints for operators.
        """
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        self.details = details
        self.troubleshooting = troubleshooting
        super().__init__(message)


class VerificationError(APIError):
    """Inbound webhook could not be trusted."""


class MissingFieldsError(VerificationError):
    """Webhook payload lacks required verification fields."""

    def __init__(self, missing: list[str], message: str = "Missing required verification fields") -> None:
        self.missing = missing
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_type="MISSING_FIELDS",
            details={"missing": missing},
        )


class SignatureMismatchError(VerificationError):
    """Webhook signature does not match the recomputed HMAC."""

    def __init__(self, message: str = "Invalid webhook signature") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_type="SIGNATURE_MISMATCH",
        )


class NotFoundError(APIError):
    """Invoice, user or address not found."""

    def __init__(self, message: str = "Resource not found", details: Any = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_type="INVOICE_ERROR",
            details=details,
        )


class ValidationError(APIError):
    """Request or order data fails the required-field contract."""

    def __init__(
        self,
        message: str = "Validation error",
        details: Any = None,
        troubleshooting: list[str] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_type="VALIDATION_ERROR",
            details=details,
            troubleshooting=troubleshooting,
        )


class ConversionError(APIError):
    """Invoice could not be converted into a shipment payload."""

    def __init__(self, message: str = "Failed to convert data to OpenLogi format", details: Any = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_type="CONVERSION_ERROR",
            details=details,
        )


class ConfigurationError(APIError):
    """A required secret or setting is missing."""

    def __init__(self, message: str) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_type="CONFIGURATION_ERROR",
        )


def create_error_response(
    error_type: str,
    message: str,
    status_code: int,
    details: Any = None,
    troubleshooting: list[str] | None = None,
    request_id: str | None = None,
    include_traceback: bool = False,
) -> JSONResponse:
    """Create a standardized JSON error response.

    Args:
        error_type: Error discriminator for client handling.
        message: Human-readable error description.
        status_code: HTTP status code.
        details: Optional error details.
        troubleshooting: Optional operator hints.
        request_id: Optional request ID for tracing.
        include_traceback: Attach the current traceback (debug mode only).

    Returns:
        JSONResponse: Formatted error response.
    """
    error_response = ErrorResponse.from_exception(
        error_type=error_type,
        message=message,
        details=details,
        troubleshooting=troubleshooting,
        request_id=request_id,
        stack=traceback.format_exc() if include_traceback else None,
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )


HTTP_ERROR_TYPES = {
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render routing errors (unknown path, wrong method) as the standard error envelope."""
    logger.warning("HTTP %s on %s %s: %s", exc.status_code, request.method, request.url.path, exc.detail)
    response = create_error_response(
        error_type=HTTP_ERROR_TYPES.get(exc.status_code, "HTTP_ERROR"),
        message=str(exc.detail),
        status_code=exc.status_code,
        request_id=request.headers.get("X-Request-ID"),
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def error_handler_middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
    """Render any exception escaping a route as the standard error envelope.

    Client errors (4xx) are logged as warnings and server errors as errors.
    A stack trace is attached to the body only in debug mode and only for
    server errors.

    Args:
        request: The incoming request.
        call_next: Next middleware or route handler.

    Returns:
        Response: Either the successful response or formatted error response.
    """
    request_id = request.headers.get("X-Request-ID")
    route = f"{request.method} {request.url.path}"

    try:
        return await call_next(request)

    except APIError as e:
        log = logger.error if e.status_code >= 500 else logger.warning
        log(
            "%s on %s: %s",
            e.error_type,
            route,
            e.message,
            extra={"request_id": request_id, "status_code": e.status_code},
        )
        return create_error_response(
            error_type=e.error_type,
            message=e.message,
            status_code=e.status_code,
            details=e.details,
            troubleshooting=e.troubleshooting,
            request_id=request_id,
            include_traceback=e.status_code >= 500 and get_settings().debug,
        )

    except HTTPException as e:
        logger.warning("HTTP %s on %s: %s", e.status_code, route, e.detail, extra={"request_id": request_id})
        return create_error_response(
            error_type="HTTP_ERROR",
            message=str(e.detail),
            status_code=e.status_code,
            request_id=request_id,
        )

    except Exception as e:
        logger.exception("Unhandled exception on %s: %s", route, str(e), extra={"request_id": request_id})
        return create_error_response(
            error_type="INTERNAL_ERROR",
            message="An unexpected error occurred",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_id=request_id,
            include_traceback=get_settings().debug,
        )
