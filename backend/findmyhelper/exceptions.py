"""
FindMyHelper Backend — Custom Exception Hierarchy
===================================================

What:  Application-specific exceptions for each class of failure.
How:   Every exception carries a user-facing message and an optional
       context dict. Handlers registered in main.py turn them into
       structured JSON responses with the matching HTTP status.
Who:   Raised by services, storage and dependencies; caught by handlers.

Exception Hierarchy:
    FindMyHelperError (base)
    ├── ValidationError             → 400 Bad Request
    ├── AuthenticationError         → 401 Unauthorized
    ├── PermissionDeniedError       → 403 Forbidden
    │   └── EmailNotVerifiedError   → 403 Forbidden
    ├── NotFoundError               → 404 Not Found
    ├── ConflictError               → 409 Conflict
    ├── RateLimitExceededError      → 429 Too Many Requests
    ├── FileStorageError            → 500 Internal Server Error
    ├── DatabaseError               → 500 Internal Server Error
    └── StorageConfigurationError   → startup only
"""

from typing import Any, Dict, Optional


class FindMyHelperError(Exception):
    """
    Base exception for all FindMyHelper application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged; only some handlers return it)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(FindMyHelperError):
    """
    Raised when client input breaks a business rule.

    Schema-level problems (wrong types, missing fields) are caught earlier by
    FastAPI and answered in the same 400 shape by the request-validation
    handler in main.py.

    Example response:
        {
            "error": "validation_error",
            "message": "Admin notes are required when rejecting an application",
            "details": {"field": "adminNotes"}
        }
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


class AuthenticationError(FindMyHelperError):
    """No valid session, bad credentials, or an unverifiable identity token."""

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(FindMyHelperError):
    """
    The caller is authenticated but may not perform the action.

    When: editing another client's task, non-admin hitting admin routes,
          reviewing a request the caller did not place.
    """

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class EmailNotVerifiedError(PermissionDeniedError):
    """Local login attempted before the verification link was followed."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="Please verify your email before logging in.",
            context=context,
        )


class NotFoundError(FindMyHelperError):
    """
    Raised when a requested resource does not exist.

    Storage returns None for missing records; services convert that into
    NotFoundError so routes never deal with None checks.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id is not None:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = str(resource_id)
        super().__init__(message=message, context=ctx)


class ConflictError(FindMyHelperError):
    """
    The request is valid but clashes with the current resource state.

    When: approving or rejecting a provider that has already been reviewed,
          a second review for the same service request.
    """

    def __init__(
        self,
        message: str = "The resource is not in a state that allows this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(FindMyHelperError):
    """
    Raised when writing an upload to disk or to the object store fails.

    The message is generic; paths and SDK errors stay in the context.
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(FindMyHelperError):
    """
    Raised when a database operation fails unexpectedly.

    The message returned to the client is always generic. The underlying
    SQLAlchemy error is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StorageConfigurationError(FindMyHelperError):
    """The configured storage backend could not be initialized."""

    def __init__(
        self,
        message: str = "Storage backend could not be initialized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(FindMyHelperError):
    """
    Raised when a client exceeds the authentication rate limit.

    Response includes a Retry-After header with the seconds until the
    oldest request leaves the window.
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Too many attempts. Please wait {retry_after} seconds before trying again."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
