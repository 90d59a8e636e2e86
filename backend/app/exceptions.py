"""
Invoicerr Backend — Custom Exception Hierarchy
================================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Custom exceptions enable targeted error handling with appropriate HTTP
       status codes and user-friendly messages. Services raise them without
       knowing anything about HTTP; global handlers translate them.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by guards and services; caught by global handlers.
When:  During request processing when recoverable errors occur.

Exception Hierarchy:
    InvoicerrError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── AuthenticationError      → 401 Unauthorized (no or bad session)
    ├── PermissionDeniedError    → 403 Forbidden (tenant or role check failed)
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict (duplicate email, already a member)
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── ExternalServiceError     → 502 Bad Gateway (webhook, SMTP, plugin)
    ├── CircuitBreakerOpenError  → 503 Service Unavailable (circuit open)
    ├── FileStorageError         → 500 Internal Server Error
    └── DatabaseError            → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class InvoicerrError(Exception):
    """
    Base exception for all Invoicerr application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged; returned only where handlers opt in)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(InvoicerrError):
    """
    Raised when client input fails a business rule.

    HTTP: 400 Bad Request. Schema-level problems are still reported by
    FastAPI as 422; this class covers rules that need the database
    (unknown company, credit quantity above the original, last owner...).
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


class AuthenticationError(InvoicerrError):
    """Raised when a request carries no valid session. HTTP: 401."""

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(InvoicerrError):
    """
    Raised when an authenticated user may not perform an action.

    HTTP: 403 Forbidden. Used by the company, role and super-admin guards
    and by services that re-check membership (set default company, ...).
    """

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(InvoicerrError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing records; services convert None into
    NotFoundError so routes never deal with it. Tenant-scoped lookups also
    raise it for rows that belong to another company, so existence is not
    leaked across tenants.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
            if resource_id:
                message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(InvoicerrError):
    """Raised when a write collides with existing state. HTTP: 409."""

    def __init__(
        self,
        message: str = "The resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(InvoicerrError):
    """
    Raised when file system operations fail.

    When: Disk full, permission denied, directory not writable, I/O error.
    HTTP: 500. The message is generic; paths go to the log only.
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ExternalServiceError(InvoicerrError):
    """
    Raised when an outbound integration fails after all retries.

    What: A webhook endpoint, the SMTP server or a plugin provider failed.
    HTTP: 502 when it reaches a handler. Webhook dispatch never lets it
          escape into the business operation that fired the event.
    """

    def __init__(
        self,
        message: str = "An external service is temporarily unavailable",
        service: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if service:
            ctx["service"] = service
        super().__init__(message=message, context=ctx)
        self.service = service


class CircuitBreakerOpenError(InvoicerrError):
    """
    Raised when a circuit breaker is in OPEN state.

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After N failures → OPEN (reject all calls for recovery_time seconds)
        → After recovery_time → HALF-OPEN (allow one test call)
        → If test succeeds → CLOSED
        → If test fails → OPEN again
    """

    def __init__(
        self,
        recovery_time: int = 60,
        service: str = "external service",
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"The {service} is temporarily unavailable due to repeated failures. "
            f"Calls resume automatically in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class DatabaseError(InvoicerrError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic. Detailed error
    info (SQL, constraint names) is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(InvoicerrError):
    """Raised when a client exceeds the per-IP request rate limit. HTTP: 429."""

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
