"""Consolidated exception hierarchy for Threadly.

All exceptions use proper exception chaining with the `from` keyword.
Error types use StrEnum so API responses carry stable type codes.
"""

from enum import StrEnum
from typing import Any

from starlette import status


class ErrorType(StrEnum):
    """Error type codes for API responses."""

    INVALID_REQUEST = "invalid_request_error"
    AUTHENTICATION = "authentication_error"
    REAUTHORIZATION = "reauthorization_required"
    PERMISSION = "permission_error"
    NOT_FOUND = "not_found_error"
    CONFLICT = "conflict_error"
    RATE_LIMIT = "rate_limit_error"
    STORAGE = "storage_error"
    PLATFORM = "platform_error"
    TRANSPORT = "transport_error"
    INTERNAL_SERVER = "internal_server_error"


# ============================================================================
# Base Exceptions
# ============================================================================


class ThreadlyError(Exception):
    """Base exception for all Threadly errors.

    Carries an HTTP status code and structured details so the API layer can
    render any subclass without knowing about it.
    """

    def __init__(
        self,
        message: str,
        *,
        error_type: ErrorType | str = ErrorType.INTERNAL_SERVER,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if isinstance(error_type, str) and not isinstance(error_type, ErrorType):
            try:
                self.error_type = ErrorType(error_type)
            except ValueError:
                self.error_type = error_type  # type: ignore[assignment]
        else:
            self.error_type = error_type
        self.status_code = status_code
        self.details = details or {}


# ============================================================================
# API Errors (Client-facing)
# ============================================================================


class ValidationError(ThreadlyError):
    """Validation error (400)."""

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message,
            error_type=ErrorType.INVALID_REQUEST,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


class NotFoundError(ThreadlyError):
    """Not found error (404)."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(
            message,
            error_type=ErrorType.NOT_FOUND,
            status_code=status.HTTP_404_NOT_FOUND,
        )


class InvalidStateError(ThreadlyError):
    """Operation not allowed in the record's current state (409)."""

    def __init__(self, message: str, *, current_status: str | None = None) -> None:
        super().__init__(
            message,
            error_type=ErrorType.CONFLICT,
            status_code=status.HTTP_409_CONFLICT,
            details={"currentStatus": current_status} if current_status else None,
        )
        self.current_status = current_status


class ConfigValidationError(ThreadlyError):
    """Configuration validation error."""

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message,
            error_type=ErrorType.INVALID_REQUEST,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


# ============================================================================
# Storage Errors
# ============================================================================


class StorageError(ThreadlyError):
    """Datastore unreachable or a read/write failed (retryable)."""

    def __init__(self, message: str = "Datastore operation failed") -> None:
        super().__init__(
            message,
            error_type=ErrorType.STORAGE,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )


class CredentialDecryptionError(StorageError):
    """A stored token could not be decrypted with the configured keys."""

    pass


# ============================================================================
# Credentials & OAuth Errors
# ============================================================================


class CredentialsError(ThreadlyError):
    """Base error for credentials that require the user to re-authorize."""

    def __init__(self, message: str, *, user_id: str | None = None) -> None:
        super().__init__(
            message,
            error_type=ErrorType.REAUTHORIZATION,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details={"userId": user_id} if user_id else None,
        )
        self.user_id = user_id


class NoCredentialError(CredentialsError):
    """No Slack credential is stored for the user."""

    def __init__(self, user_id: str) -> None:
        super().__init__(
            f"Slack is not connected for user '{user_id}'. Connect Slack to continue.",
            user_id=user_id,
        )


class NoRefreshTokenError(CredentialsError):
    """The stored credential has no refresh token (legacy grant)."""

    def __init__(self, user_id: str) -> None:
        super().__init__(
            f"No refresh token stored for user '{user_id}'. Reconnect Slack to continue.",
            user_id=user_id,
        )


class RefreshRejectedError(CredentialsError):
    """The platform rejected the refresh token (expired or revoked)."""

    def __init__(
        self,
        message: str = "Slack rejected the refresh token. Reconnect Slack to continue.",
        *,
        user_id: str | None = None,
        platform_error: str | None = None,
    ) -> None:
        super().__init__(message, user_id=user_id)
        self.platform_error = platform_error


class InvalidCodeError(ThreadlyError):
    """OAuth authorization code expired, reused or malformed (400)."""

    def __init__(self, message: str, *, platform_error: str | None = None) -> None:
        super().__init__(
            message,
            error_type=ErrorType.INVALID_REQUEST,
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"platformError": platform_error} if platform_error else None,
        )
        self.platform_error = platform_error


class InsufficientScopeError(ThreadlyError):
    """The token lacks a scope the call needs (403); caller must re-prompt OAuth."""

    def __init__(
        self,
        needed: list[str] | None = None,
        provided: list[str] | None = None,
    ) -> None:
        self.needed = needed or []
        self.provided = provided or []
        needed_text = ", ".join(self.needed) or "additional permissions"
        super().__init__(
            f"missing_scope: Slack needs {needed_text}. "
            "Reconnect your Slack account with the additional permissions.",
            error_type=ErrorType.PERMISSION,
            status_code=status.HTTP_403_FORBIDDEN,
            details={"needed": self.needed, "provided": self.provided},
        )


# ============================================================================
# Chat Platform Errors
# ============================================================================


class PlatformRejectedError(ThreadlyError):
    """The Slack API answered with ok=false (502)."""

    def __init__(
        self,
        platform_error: str,
        *,
        method: str | None = None,
        message: str | None = None,
        status_code: int = status.HTTP_502_BAD_GATEWAY,
        error_type: ErrorType = ErrorType.PLATFORM,
    ) -> None:
        text = message or (
            f"Slack API {method} failed: {platform_error}"
            if method
            else f"Slack API error: {platform_error}"
        )
        super().__init__(
            text,
            error_type=error_type,
            status_code=status_code,
            details={"platformError": platform_error, "method": method},
        )
        self.platform_error = platform_error
        self.method = method


class RateLimitedError(PlatformRejectedError):
    """Slack answered HTTP 429."""

    def __init__(self, *, method: str | None = None, retry_after: int | None = None):
        super().__init__(
            "ratelimited",
            method=method,
            message=f"Slack rate limit reached for {method or 'request'}; "
            f"retry after {retry_after or 'a few'} seconds",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            error_type=ErrorType.RATE_LIMIT,
        )
        self.retry_after = retry_after


class ChannelJoinError(PlatformRejectedError):
    """The bot is not in the channel and could not join it."""

    def __init__(self, channel_id: str, reason: str) -> None:
        super().__init__(
            reason,
            method="conversations.join",
            message=(
                f"The app could not join channel {channel_id} ({reason}). "
                "Add the app to the channel manually and try again."
            ),
        )
        self.channel_id = channel_id
        self.reason = reason


class TransportError(ThreadlyError):
    """No usable response from Slack (timeout, connection failure) (504)."""

    def __init__(self, message: str, *, method: str | None = None) -> None:
        super().__init__(
            message,
            error_type=ErrorType.TRANSPORT,
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            details={"method": method} if method else None,
        )
        self.method = method


__all__ = [
    # Enums
    "ErrorType",
    # Base
    "ThreadlyError",
    # API Errors
    "ValidationError",
    "NotFoundError",
    "InvalidStateError",
    "ConfigValidationError",
    # Storage
    "StorageError",
    "CredentialDecryptionError",
    # Credentials & OAuth
    "CredentialsError",
    "NoCredentialError",
    "NoRefreshTokenError",
    "RefreshRejectedError",
    "InvalidCodeError",
    "InsufficientScopeError",
    # Chat platform
    "PlatformRejectedError",
    "RateLimitedError",
    "ChannelJoinError",
    "TransportError",
]
