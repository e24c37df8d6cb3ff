"""
Shared error handling for the sample API.

Two kinds of failure exist. Authoritative failures are exceptions derived
from ``ServiceException`` and abort the request that caused them.
Best-effort side channels (cache refresh, event publish, feed append)
report through ``AdvisoryOutcome`` values instead, which callers are free
to discard.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from opentelemetry import trace
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ServiceException(Exception):
    """Base exception for the API service."""

    status_code = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details,
        )


class ValidationError(ServiceException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class ConflictError(ServiceException):
    """Uniqueness violations reported by the primary store."""

    status_code = 409

    def __init__(self, message: str = "Resource already exists", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFLICT", message, details)


class ServiceError(ServiceException):
    """Service-related errors."""

    def __init__(self, message: str = "Service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("SERVICE_ERROR", message, details)


class ExternalServiceError(ServiceException):
    """External service errors."""

    status_code = 503

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)


class CacheUnavailableError(ServiceException):
    """Cache backend unreachable, timed out, or returned garbage.

    Only raised by the Redis store; the cache and feed layers always catch it.
    """

    status_code = 503

    def __init__(self, message: str = "Cache unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_UNAVAILABLE", message, details)


@dataclass(frozen=True)
class AdvisoryOutcome:
    """Result of a best-effort operation."""

    operation: str
    ok: bool
    error: Optional[str] = None

    @classmethod
    def success(cls, operation: str) -> "AdvisoryOutcome":
        return cls(operation=operation, ok=True)

    @classmethod
    def failure(cls, operation: str, error: Any) -> "AdvisoryOutcome":
        return cls(operation=operation, ok=False, error=str(error))
