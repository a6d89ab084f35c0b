"""Standard exception classes for the API.

All custom exceptions inherit from CrosspostException and include:
- message: Human-readable error message
- error_code: Machine-readable error code (e.g., "PREMIUM_REQUIRED")
- details: Optional dictionary with additional context
"""

from typing import Any, Iterable, Optional


class CrosspostException(Exception):
    """Base exception for all Crosspost API errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for client handling
        details: Optional dictionary with additional error context
        status_code: HTTP status code (set by subclasses)
    """

    status_code: int = 500
    default_error_code: str = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        result = {
            "code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class NotFoundError(CrosspostException):
    """Resource not found (HTTP 404)."""

    status_code = 404
    default_error_code = "NOT_FOUND"

    def __init__(
        self,
        message: str = "Resource not found",
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details)


class InvalidContentError(CrosspostException):
    """Request body or post content failed validation (HTTP 400)."""

    status_code = 400
    default_error_code = "INVALID_CONTENT"

    def __init__(
        self,
        message: str = "Invalid request data",
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details)


class PlatformNotConnectedError(CrosspostException):
    """Some requested platforms have no usable credential (HTTP 400)."""

    status_code = 400
    default_error_code = "PLATFORM_NOT_CONNECTED"

    def __init__(self, missing_platforms: Iterable[str]):
        missing = list(missing_platforms)
        super().__init__(
            f"Please connect to: {', '.join(missing)}",
            details={"missingPlatforms": missing},
        )
        self.missing_platforms = missing


class AuthenticationError(CrosspostException):
    """Authentication failed (HTTP 401).

    Use when the bearer token is missing, invalid, or expired.
    """

    status_code = 401
    default_error_code = "AUTHENTICATION_REQUIRED"

    def __init__(
        self,
        message: str = "Authentication required",
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details)


class PremiumRequiredError(CrosspostException):
    """The feature needs an active premium subscription (HTTP 403)."""

    status_code = 403
    default_error_code = "PREMIUM_REQUIRED"

    def __init__(
        self,
        message: str = "Premium subscription required for posting features",
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details)


class OAuthCallbackError(CrosspostException):
    """An OAuth callback could not be turned into a connection (HTTP 400)."""

    status_code = 400
    default_error_code = "OAUTH_FAILED"

    def __init__(
        self,
        message: str = "OAuth authentication failed",
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, error_code, details)
