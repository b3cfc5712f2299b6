"""
Strata Backend: Error Taxonomy
==============================

What:  Defines the application exceptions every layer speaks.
How:   Each exception carries a user-facing message, a server-side context dict
       and a stable ``kind`` string. The dispatcher maps ``kind`` to an HTTP
       status code and an ErrorDescriptor body.
Who:   Raised by the validation gate, adapters and services; caught in one place
       (Dispatcher.dispatch).

Exception Hierarchy:
    StrataError (base)
    ├── ValidationError           kind=ValidationError        → 400
    ├── NotFoundError             kind=NotFound               → 404
    ├── ConflictError             kind=ConflictAlreadyExists  → 409
    ├── ServiceError              kind=ServiceError           → 422
    ├── InternalError             kind=InternalError          → 500
    ├── BackendUnavailableError   kind=BackendUnavailable     → 503 (retryable)
    └── DeadlineExceededError     kind=TimeoutError           → 504

Only ``details`` ever reaches the client. ``context`` is for logs.
"""

from typing import Any, Dict, Optional


class StrataError(Exception):
    """
    Base exception for all Strata application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
        details:  Field-level detail map returned to the client (may be empty)
    """

    kind = "InternalError"
    retryable = False

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.context = context or {}
        self.details = details or {}
        super().__init__(self.message)

    def annotate(self, message: Optional[str] = None, **context: Any) -> "StrataError":
        """
        Add business context to an error without changing its kind.

        Services call this on lower-layer errors before re-raising them, e.g.
        ``raise exc.annotate("Email is already registered", email=email)``.
        Returns ``self`` so it can be used inline in a raise statement.
        """
        if message:
            self.context.setdefault("original_message", self.message)
            self.message = message
            self.args = (message,)
        self.context.update(context)
        return self


class ValidationError(StrataError):
    """
    Raised when client input fails the validation gate.

    ``details`` maps each offending field to a human-readable reason. Every
    violated field is listed, not only the first one.

    Example response:
        {
            "kind": "ValidationError",
            "message": "Request validation failed",
            "details": {"name": "String should have at least 1 character"}
        }
    """

    kind = "ValidationError"

    def __init__(
        self,
        message: str = "Request validation failed",
        details: Optional[Dict[str, str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context, details=details)


class NotFoundError(StrataError):
    """Raised when a requested resource (or route) does not exist."""

    kind = "NotFound"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(StrataError):
    """
    Raised when a write collides with an existing record's uniqueness key.

    Adapters raise this from an atomic check (lock or UNIQUE constraint), so
    services never rely on a read-then-write window.
    """

    kind = "ConflictAlreadyExists"

    def __init__(
        self,
        message: str = "A resource with the same unique key already exists",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class BackendUnavailableError(StrataError):
    """
    Raised when an infrastructure backend is temporarily unreachable.

    The only retryable kind, and only for idempotent operations
    (see services/retry.py).
    """

    kind = "BackendUnavailable"
    retryable = True

    def __init__(
        self,
        message: str = "A backend service is temporarily unavailable. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ServiceError(StrataError):
    """Raised when a business rule rejects an otherwise well-formed request."""

    kind = "ServiceError"

    def __init__(
        self,
        message: str = "The request violates a business rule",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DeadlineExceededError(StrataError):
    """Raised when a request does not finish within its deadline."""

    kind = "TimeoutError"

    def __init__(
        self,
        timeout: float = 0.0,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The request did not complete within {timeout:g} seconds"
        ctx = context or {}
        ctx["timeout"] = timeout
        super().__init__(message=message, context=ctx)
        self.timeout = timeout


class InternalError(StrataError):
    """
    Unexpected or unclassified failure.

    The message given here is logged; the client only ever sees
    OPAQUE_MESSAGE.
    """

    kind = "InternalError"
    OPAQUE_MESSAGE = "An unexpected error occurred. Please try again later."

    def __init__(
        self,
        message: str = "Internal error",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
