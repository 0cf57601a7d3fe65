"""Custom exception classes for the RollCall check-in service."""
from typing import Optional, Dict, Any


class RollCallException(Exception):
    """Base exception for all application-specific exceptions."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class DatabaseError(RollCallException):
    """Exception raised for database-related errors."""
    pass


class ConnectivityError(DatabaseError):
    """The external store could not be reached or did not answer."""

    def __init__(
        self,
        message: str = "Could not connect, please try again.",
        error_code: Optional[str] = "CONNECTIVITY_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details)


class ValidationError(RollCallException):
    """Exception raised for validation errors."""
    pass


class AuthenticationError(RollCallException):
    """Exception raised for authentication errors (no session, expired session)."""
    pass


class AuthorizationError(RollCallException):
    """Exception raised for authorization errors (role too low)."""
    pass


class NotFoundError(RollCallException):
    """Exception raised when a resource is not found."""
    pass


class ConflictError(RollCallException):
    """Exception raised for resource conflicts (e.g., duplicate entries)."""
    pass


class ConfigurationError(RollCallException):
    """Exception raised for configuration errors."""
    pass


class EnrichmentError(RollCallException):
    """A live roster notification could not be resolved into a full attendee."""
    pass


# First match wins; checked against the lowercased exception text
_SAFE_MESSAGES = (
    (("password", "credential", "invalid login"), "Invalid email or password"),
    (("jwt", "token", "session"), "Your session has expired, please login again"),
    (("connect", "timeout", "supabase", "postgrest", "realtime"), "Could not connect, please try again."),
)


def sanitize_error_message(error: Exception, include_details: bool = False) -> str:
    """Message that is safe to return to a client for ``error``.

    Service exceptions already carry client-facing text. Anything else is
    reduced to a fixed message unless DEBUG is on or ``include_details`` is set.
    """
    from rollcall.core.config import get_settings

    if isinstance(error, RollCallException):
        return error.message

    settings = get_settings()
    if include_details or (settings and settings.DEBUG):
        return f"{type(error).__name__}: {error}"

    text = str(error).lower()
    for keywords, message in _SAFE_MESSAGES:
        if any(keyword in text for keyword in keywords):
            return message
    return "An error occurred. Please try again."
