"""Error handling module for cafe-auth.

This module defines error codes, exception classes, and response models.

Error Response Format:
{
    "error": {
        "code": "INVALID_CREDENTIALS",
        "message": "Invalid username or password"
    },
    "attempts_remaining": 2
}

The optional top-level fields (attempts_remaining, remaining_seconds) are only
present on the errors that carry them.

Usage:
    from cafeauth.core.errors import CooldownError, ForbiddenError

    # Raise with default message
    raise ForbiddenError()

    # Raise with extra context
    raise CooldownError(remaining_seconds=120)
"""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    COOLDOWN = "COOLDOWN"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorDetail(BaseModel):
    """Error detail containing code and message."""

    code: str
    message: str


class ErrorResponse(BaseModel):
    """Error response format."""

    error: ErrorDetail
    attempts_remaining: int | None = None
    remaining_seconds: int | None = None

    def to_content(self) -> dict:
        """Serialize without the optional fields that are not set."""
        return self.model_dump(exclude_none=True)


class CafeAuthError(Exception):
    """Base exception for cafe-auth.

    All cafe-auth specific exceptions should inherit from this class.
    This enables centralized exception handling in FastAPI.

    Attributes:
        code: The error code from ErrorCode enum
        message: Human-readable error message
        status_code: HTTP status code to return
    """

    def __init__(self, code: ErrorCode, message: str, status_code: int) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to ErrorResponse model."""
        return ErrorResponse(
            error=ErrorDetail(code=self.code.value, message=self.message)
        )


class ValidationError(CafeAuthError):
    """400 Bad Request - Malformed input. Never has side effects."""

    def __init__(self, message: str = "Invalid request") -> None:
        super().__init__(ErrorCode.VALIDATION_ERROR, message, 400)


class InvalidCredentialsError(CafeAuthError):
    """401 Unauthorized - Wrong password or unknown user."""

    def __init__(
        self,
        attempts_remaining: int | None = None,
        message: str = "Invalid username or password",
    ) -> None:
        self.attempts_remaining = attempts_remaining
        super().__init__(ErrorCode.INVALID_CREDENTIALS, message, 401)

    def to_response(self) -> ErrorResponse:
        response = super().to_response()
        response.attempts_remaining = self.attempts_remaining
        return response


class NotAuthenticatedError(CafeAuthError):
    """401 Unauthorized - Missing, expired or invalid session."""

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(ErrorCode.NOT_AUTHENTICATED, message, 401)


class ForbiddenError(CafeAuthError):
    """403 Forbidden - Valid session, insufficient role."""

    def __init__(self, message: str = "Permission denied") -> None:
        super().__init__(ErrorCode.FORBIDDEN, message, 403)


class NotFoundError(CafeAuthError):
    """404 Not Found."""

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(ErrorCode.NOT_FOUND, message, 404)


def format_wait(seconds: int) -> str:
    """Render a wait time for humans ("45 seconds", "2 minutes")."""
    if seconds < 60:
        return f"{seconds} second{'s' if seconds != 1 else ''}"
    minutes, rest = divmod(seconds, 60)
    text = f"{minutes} minute{'s' if minutes != 1 else ''}"
    if rest:
        text += f" {rest} second{'s' if rest != 1 else ''}"
    return text


class CooldownError(CafeAuthError):
    """423 Locked - Identity is on login cooldown."""

    def __init__(self, remaining_seconds: int, message: str | None = None) -> None:
        self.remaining_seconds = remaining_seconds
        if message is None:
            message = (
                "Too many failed attempts. "
                f"Try again in {format_wait(remaining_seconds)}."
            )
        super().__init__(ErrorCode.COOLDOWN, message, 423)

    def to_response(self) -> ErrorResponse:
        response = super().to_response()
        response.remaining_seconds = self.remaining_seconds
        return response


class StoreUnavailableError(CafeAuthError):
    """503 Service Unavailable - Backing store failed or timed out."""

    def __init__(self, message: str = "Authentication store unavailable") -> None:
        super().__init__(ErrorCode.STORE_UNAVAILABLE, message, 503)


class InternalError(CafeAuthError):
    """500 Internal Server Error - Unexpected error."""

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(ErrorCode.INTERNAL_ERROR, message, 500)
