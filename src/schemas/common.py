"""Common schemas used across the application."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Response schema for basic health check endpoint.

    Used for liveness probes to verify the service is running.
    """

    model_config = ConfigDict(from_attributes=True)

    status: HealthStatus = Field(description="Current health status")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Check timestamp")
    version: str = Field(default="0.1.0", description="API version")


class CheckResult(BaseModel):
    """Result of an individual dependency check."""

    model_config = ConfigDict(from_attributes=True)

    name: str = Field(description="Name of the dependency being checked")
    healthy: bool = Field(description="Whether the dependency is healthy")
    latency_ms: float | None = Field(default=None, description="Response time in milliseconds")
    error: str | None = Field(default=None, description="Error message if unhealthy")


class ReadinessResponse(BaseModel):
    """Response schema for readiness check endpoint."""

    model_config = ConfigDict(from_attributes=True)

    status: HealthStatus = Field(description="Overall readiness status")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Check timestamp")
    checks: list[CheckResult] = Field(default_factory=list, description="Individual check results")


class ErrorBody(BaseModel):
    """Error section of the standard error envelope."""

    type: str = Field(description="Stable error discriminator")
    message: str = Field(description="Human-readable error description")
    details: Any = Field(default=None, description="Additional error details")
    troubleshooting: list[str] | None = Field(default=None, description="Operator hints")
    stack: str | None = Field(default=None, description="Stack trace (debug mode only)")


class ErrorResponse(BaseModel):
    """Standard error response schema.

    All API errors are returned in this format for consistency.
    """

    model_config = ConfigDict(from_attributes=True)

    success: bool = Field(default=False, description="Always false for errors")
    error: ErrorBody = Field(description="Error information")
    request_id: str | None = Field(default=None, description="Request ID for tracing")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Error timestamp")

    @classmethod
    def from_exception(
        cls,
        error_type: str,
        message: str,
        details: Any = None,
        troubleshooting: list[str] | None = None,
        request_id: str | None = None,
        stack: str | None = None,
    ) -> "ErrorResponse":
        """Create an ErrorResponse from exception details.

        Args:
            error_type: Stable error discriminator.
            message: Human-readable error description.
            details: Optional error details.
            troubleshooting: Optional operator hints.
            request_id: Optional request ID for tracing.
            stack: Optional stack trace, only set in debug mode.

        Returns:
            ErrorResponse: Formatted error response.
        """
        return cls(
            error=ErrorBody(
                type=error_type,
                message=message,
                details=details,
                troubleshooting=troubleshooting,
                stack=stack,
            ),
            request_id=request_id,
        )
