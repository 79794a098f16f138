"""
RouteSnap Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for the service layer.
Why:   Custom exceptions enable targeted error handling with appropriate HTTP
       status codes and user-friendly messages, without leaking internals.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses.
Who:   Raised by services and middleware; caught by global handlers.

Exception Hierarchy:
    RouteSnapError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── FileStorageError         → 500 Internal Server Error
    ├── OCRServiceError          → 503 Service Unavailable (retry later)
    ├── CircuitBreakerOpenError  → 503 Service Unavailable (circuit open)
    └── GeocodingError           → handled inside RouteService (stop kept,
                                   reported as ungeocoded)

Note:
    The route-sheet parser itself never raises any of these. Malformed text
    degrades into fewer stops or "unknown" statuses instead.
"""

from typing import Any, Dict, Optional


class RouteSnapError(Exception):
    """
    Base exception for all RouteSnap application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned for 5xx errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(RouteSnapError):
    """
    Raised when client input fails validation.

    When:    Unsupported image type, size exceeded, undecodable image, empty text.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class FileStorageError(RouteSnapError):
    """
    Raised when the scratch copy of an uploaded photo cannot be written.

    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class OCRServiceError(RouteSnapError):
    """
    Raised when the OCR provider (Gemini) fails after all retries.

    HTTP:    503 Service Unavailable, with Retry-After when known.
    """

    def __init__(
        self,
        message: str = "Route sheet text recognition is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(RouteSnapError):
    """
    Raised when the OCR circuit breaker is in OPEN state.

    When:    After cb_failure_threshold consecutive failures (default: 5).
    HTTP:    503 Service Unavailable

    State machine:
        CLOSED → failures reach threshold → OPEN (reject for recovery_time)
        → HALF-OPEN (one test call) → CLOSED on success / OPEN on failure
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Text recognition is temporarily unavailable due to repeated failures. "
            f"The service will automatically retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class GeocodingError(RouteSnapError):
    """
    Raised by GeocodingService when the geocoder fails after retries.

    Not mapped to an HTTP status: RouteService catches it, logs it, and
    returns the stop without coordinates.
    """

    def __init__(
        self,
        message: str = "Address lookup failed",
        address: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if address:
            ctx["address"] = address
        super().__init__(message=message, context=ctx)
        self.address = address

