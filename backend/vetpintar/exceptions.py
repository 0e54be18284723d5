"""
VetPintar Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions, each tied to one HTTP status code.
How:   Every exception carries a user-facing message and an optional context
       dict. Global handlers (registered in main.py) turn them into JSON
       error responses.
Who:   Raised by services, dependencies and middleware; caught by handlers.

Exception Hierarchy:
    VetPintarError (base)                 → 500
    ├── ValidationError                   → 400 Bad Request
    ├── BusinessRuleError                 → 400 Bad Request
    ├── AuthenticationError               → 401 Unauthorized
    ├── PermissionDeniedError             → 403 Forbidden
    ├── NotFoundError                     → 404 Not Found
    ├── ConflictError                     → 409 Conflict
    ├── RateLimitExceededError            → 429 Too Many Requests
    ├── DatabaseError                     → 500 Internal Server Error
    ├── ServiceConfigurationError         → 500 Internal Server Error
    ├── AIServiceError                    → 503 Service Unavailable
    └── CircuitBreakerOpenError           → 503 Service Unavailable
"""

from typing import Any, Dict, Optional


class VetPintarError(Exception):
    """
    Base exception for all VetPintar application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional info; returned as `details` for client errors,
                  logged only for server errors
        status_code / error_code: Used by the generic exception handler
    """

    status_code: int = 500
    error_code: str = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(VetPintarError):
    """
    Raised when client input fails a validation rule that the request schema
    cannot express (e.g. a clinic ID is required but absent).

    HTTP: 400 Bad Request
    """

    status_code = 400
    error_code = "validation_error"

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


class BusinessRuleError(VetPintarError):
    """
    Raised when a well-formed request violates a domain rule.

    When:    Deleting a completed appointment, paying more than the balance,
             modifying a paid invoice, admitting an already admitted patient.
    HTTP:    400 Bad Request
    """

    status_code = 400
    error_code = "invalid_operation"

    def __init__(
        self,
        message: str = "This operation is not allowed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthenticationError(VetPintarError):
    """
    Raised when the caller cannot be identified.

    When:    Missing/expired/invalid token, wrong credentials, inactive account.
    HTTP:    401 Unauthorized
    """

    status_code = 401
    error_code = "unauthorized"

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(VetPintarError):
    """
    Raised when an identified caller lacks the role or clinic access.

    HTTP:    403 Forbidden
    """

    status_code = 403
    error_code = "forbidden"

    def __init__(
        self,
        message: str = "Insufficient permissions",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(VetPintarError):
    """
    Raised when a requested resource does not exist or lies outside the
    caller's clinic.

    Clinic-scoped lookups answer 404 (not 403) for records of other clinics.

    HTTP:    404 Not Found
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"{resource.capitalize()} not found"
            if resource_id:
                message = f"{resource.capitalize()} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(VetPintarError):
    """
    Raised when a write would violate uniqueness or a scheduling constraint.

    When:    Duplicate email, duplicate microchip/SKU, double-booked veterinarian.
    HTTP:    409 Conflict
    """

    status_code = 409
    error_code = "conflict"

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(VetPintarError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    HTTP:    429 Too Many Requests (with Retry-After header)
    """

    status_code = 429
    error_code = "rate_limit_exceeded"

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


class DatabaseError(VetPintarError):
    """
    Raised when database operations fail unexpectedly.

    Security Note:
        The message returned to the client is always generic. Details
        (constraint names, SQL) stay in the server log.

    HTTP:    500 Internal Server Error
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ServiceConfigurationError(VetPintarError):
    """Raised when a feature is called but its settings are missing (HTTP 500)."""

    status_code = 500
    error_code = "configuration_error"

    def __init__(
        self,
        message: str = "Service is not configured",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AIServiceError(VetPintarError):
    """
    Raised when the upstream AI service fails after all retries.

    HTTP:    503 Service Unavailable (Retry-After when known)
    """

    status_code = 503
    error_code = "ai_service_error"

    def __init__(
        self,
        message: str = "AI service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(VetPintarError):
    """
    Raised when the AI proxy circuit breaker is OPEN.

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After N failures → OPEN (reject all calls for recovery_timeout seconds)
        → After timeout → HALF-OPEN (allow one test call)
        → Test succeeds → CLOSED; test fails → OPEN again

    HTTP:    503 Service Unavailable
    """

    status_code = 503
    error_code = "service_unavailable"

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"AI service is temporarily unavailable due to repeated failures. "
            f"The service will automatically retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time
