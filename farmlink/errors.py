"""
Classified Error Taxonomy.

Every failed network call is classified exactly once, at the
``ApiClient`` boundary, into one of the ``ApiError`` subclasses below.
Raw ``httpx`` or JSON exceptions never leave the dispatcher, and every
error carries a human-readable message suitable for display.

Usage::

    try:
        await auth_service.login({"phone_number": p, "password": pw})
    except ValidationError as exc:
        show(exc.to_display(), exc.errors)
    except ApiError as exc:
        show(exc.to_display())
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional


class ErrorCode(StrEnum):
    """Exhaustive enumeration of classified error categories."""

    NETWORK_ERROR = "NETWORK_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    SESSION_STATE = "SESSION_STATE"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.NETWORK_ERROR: "Network error. Please check your connection.",
    ErrorCode.UNAUTHORIZED: "Your session has expired. Please login again.",
    ErrorCode.FORBIDDEN: "You are not authorized to perform this action.",
    ErrorCode.NOT_FOUND: "Resource not found.",
    ErrorCode.VALIDATION_ERROR: "Please check your input and try again.",
    ErrorCode.SERVER_ERROR: "Server error. Please try again later.",
    ErrorCode.UNKNOWN_ERROR: "An error occurred. Please try again.",
    ErrorCode.SESSION_STATE: "That action is not available for your account.",
}


class ApiError(Exception):
    """Base class for every classified error.

    Attributes
    ----------
    message:
        Human-readable description; the server's ``message`` when it sent
        one, otherwise the category default from ``ERROR_MESSAGES``.
    status:
        HTTP status code, or ``None`` when no response was received.
    """

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(self, message: Optional[str] = None, status: Optional[int] = None) -> None:
        self.message: str = message or ERROR_MESSAGES[self.code]
        self.status: Optional[int] = status
        super().__init__(self.message)

    def to_display(self) -> str:
        """Return the text a UI should show for this error."""
        return self.message


class NetworkError(ApiError):
    """No response was received at all (DNS, refused, timeout)."""

    code = ErrorCode.NETWORK_ERROR


class Unauthorized(ApiError):
    """HTTP 401.  The session has already been torn down when raised."""

    code = ErrorCode.UNAUTHORIZED


class Forbidden(ApiError):
    """HTTP 403.  No session side effect."""

    code = ErrorCode.FORBIDDEN


class NotFound(ApiError):
    """HTTP 404."""

    code = ErrorCode.NOT_FOUND


class ValidationError(ApiError):
    """HTTP 422, or a client-side presence check that failed.

    ``errors`` maps field names to their messages.
    """

    code = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        message: Optional[str] = None,
        status: Optional[int] = 422,
        errors: Optional[dict[str, list[str]]] = None,
    ) -> None:
        super().__init__(message, status)
        self.errors: dict[str, list[str]] = errors or {}

    def to_display(self) -> str:
        if not self.errors:
            return self.message
        details = "; ".join(
            f"{field}: {', '.join(messages)}" for field, messages in self.errors.items()
        )
        return f"{self.message} ({details})"


class ServerError(ApiError):
    """HTTP 5xx."""

    code = ErrorCode.SERVER_ERROR


class UnknownError(ApiError):
    """Any other non-2xx status, or a response body that could not be read."""

    code = ErrorCode.UNKNOWN_ERROR


class SessionStateError(ApiError):
    """A session operation was attempted from a state that forbids it.

    Raised client-side only (e.g. switching to a role the user does not
    hold); never produced by the dispatcher.
    """

    code = ErrorCode.SESSION_STATE


def error_for_status(
    status: int,
    message: Optional[str] = None,
    errors: Optional[dict[str, list[str]]] = None,
) -> ApiError:
    """Map an HTTP status code to its classified error instance."""
    if status == 401:
        return Unauthorized(message, status)
    if status == 403:
        return Forbidden(message, status)
    if status == 404:
        return NotFound(message, status)
    if status == 422:
        return ValidationError(message, status, errors=errors)
    if 500 <= status < 600:
        return ServerError(message, status)
    return UnknownError(message, status)
