"""
Exception handling utilities.

Defines the error taxonomy shared by services and the HTTP layer.
Each category carries the HTTP status it maps to.
"""

from aiohttp import ClientError
from sqlalchemy.exc import OperationalError


class SecurityError(Exception):
    """Raised when a security-critical operation fails."""
    pass


class IndexerError(Exception):
    """Base class for all indexing engine errors."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(IndexerError):
    """Malformed payload or request, or an invalid state transition."""

    status_code = 400
    default_message = "Invalid request"


class AuthError(IndexerError):
    """Bad secret, signature or credentials."""

    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(IndexerError):
    """Unknown job or webhook, or one the caller does not own."""

    status_code = 404
    default_message = "Not found"


class RateLimitedError(IndexerError):
    """Rate limit exhausted; the caller is expected to retry later."""

    status_code = 429
    default_message = "Rate limit exceeded"


class UpstreamError(IndexerError):
    """The webhook provider call failed."""

    status_code = 502
    default_message = "Upstream provider error"

    def __init__(
        self, message: str | None = None, upstream_status: int | None = None
    ) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status


class InternalError(IndexerError):
    """Unexpected failure."""

    status_code = 500
    default_message = "Internal server error"


# Exception categories based on handling strategy

# Terminal for the current request, returned to the caller as-is
CLIENT_ERRORS = (
    ValidationError,
    AuthError,
    NotFoundError,
    RateLimitedError,
)

# Transient infrastructure failures, logged and surfaced as job/delivery failures
TRANSIENT_ERRORS = (
    UpstreamError,
    ClientError,        # aiohttp transport errors
    OperationalError,   # database connectivity
    TimeoutError,
)


def is_client_error(exc: BaseException) -> bool:
    """
    Check if exception is the caller's fault.

    Args:
        exc: Exception to check

    Returns:
        True if the error should be reported back verbatim
    """
    return isinstance(exc, CLIENT_ERRORS)


def is_transient(exc: BaseException) -> bool:
    """
    Check if exception is a transient infrastructure failure.

    Args:
        exc: Exception to check

    Returns:
        True if a later retry may succeed
    """
    return isinstance(exc, TRANSIENT_ERRORS)
