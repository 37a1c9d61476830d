"""
Natours Backend — Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions, each carrying an HTTP status code.
How:   Every exception stores a client-safe message and an optional context
       dict. The global error handler (natours/errors.py) renders them.
Who:   Raised by pipeline stages, route handlers and services.

Exception Hierarchy:
    NatoursError (base, operational)
    ├── ValidationError          → 400 Bad Request
    ├── WebhookSignatureError    → 400 Bad Request
    ├── AuthenticationError      → 401 Unauthorized
    ├── PermissionDeniedError    → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    │   └── RouteNotFoundError   → 404 Not Found (no route matched)
    ├── PayloadTooLargeError     → 413 Payload Too Large
    ├── RateLimitExceededError   → 429 Too Many Requests
    └── DatabaseError            → 500 (NOT operational: message never shown)

Operational errors are expected failures whose message is safe to return to
the client verbatim. Anything that is not operational — including every
exception that is not a NatoursError — is a programming or unknown error and
only ever reaches the client as a generic 500.
"""

from typing import Any, Dict, Optional


class NatoursError(Exception):
    """
    Base exception for all Natours application errors.

    Attributes:
        message:        User-facing error description
        status_code:    HTTP status code for the response
        context:        Additional debug info (logged, never returned)
        is_operational: Whether the message is safe to return verbatim
    """

    status_code: int = 500
    is_operational: bool = True

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.context = context or {}
        super().__init__(self.message)

    @property
    def status(self) -> str:
        """'fail' for client errors, 'error' for server errors."""
        return "fail" if 400 <= self.status_code < 500 else "error"


class ValidationError(NatoursError):
    """Client input failed validation. HTTP 400."""

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid input data.",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class WebhookSignatureError(NatoursError):
    """A payment webhook payload failed signature verification. HTTP 400."""

    status_code = 400

    def __init__(self, reason: str = "invalid signature"):
        super().__init__(message=f"Webhook error: {reason}", context={"reason": reason})


class AuthenticationError(NatoursError):
    """
    Missing, invalid or stale credentials. HTTP 401.

    Raised by the `protect` dependency when no token is supplied, the token
    does not verify, the user no longer exists, or the password changed
    after the token was issued.
    """

    status_code = 401

    def __init__(
        self,
        message: str = "You are not logged in! Please log in to get access.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(NatoursError):
    """Authenticated user lacks the required role. HTTP 403."""

    status_code = 403

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(NatoursError):
    """A requested resource does not exist. HTTP 404."""

    status_code = 404

    def __init__(
        self,
        resource: str = "document",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"No {resource} found"
        if resource_id:
            message = f"No {resource} found with that ID"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class RouteNotFoundError(NotFoundError):
    """
    No route group matched the request. HTTP 404.

    Carries the original URL (path plus query string) so the client can see
    exactly what it asked for.
    """

    def __init__(self, original_url: str):
        super().__init__(resource="route", context={"url": original_url})
        self.message = f"Can't find {original_url} on this server!"
        self.args = (self.message,)
        self.original_url = original_url


class PayloadTooLargeError(NatoursError):
    """Request body exceeded the configured limit. HTTP 413."""

    status_code = 413

    def __init__(self, limit: int, received: Optional[int] = None):
        ctx: Dict[str, Any] = {"limit": limit}
        if received is not None:
            ctx["received"] = received
        super().__init__(
            message=f"Request body is too large. Maximum allowed size is {limit} bytes.",
            context=ctx,
        )
        self.limit = limit


class RateLimitExceededError(NatoursError):
    """
    Client exceeded the per-IP request rate limit. HTTP 429.

    Response includes a Retry-After header with the seconds until the oldest
    request in the window expires.
    """

    status_code = 429

    def __init__(
        self,
        message: str = "Too many requests from this IP, please try again in an hour!",
        retry_after: int = 3600,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class DatabaseError(NatoursError):
    """
    Database operation failed unexpectedly. HTTP 500.

    Not operational: the client only ever sees the generic failure message,
    the detail goes to the log.
    """

    status_code = 500
    is_operational = False

    def __init__(
        self,
        message: str = "A database error occurred.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
