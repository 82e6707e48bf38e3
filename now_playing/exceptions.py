"""Custom exceptions for the Now Playing backend with HTTP status codes."""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error responses."""

    # Generic errors
    NOW_PLAYING_ERROR = "NOW_PLAYING_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Spotify errors
    SPOTIFY_ERROR = "SPOTIFY_ERROR"
    SPOTIFY_AUTH_ERROR = "SPOTIFY_AUTH_ERROR"
    SPOTIFY_NOT_AUTHENTICATED = "SPOTIFY_NOT_AUTHENTICATED"
    SPOTIFY_FETCH_ERROR = "SPOTIFY_FETCH_ERROR"

    # Refresh token storage
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"

    # Admin flow
    ADMIN_SESSION_INVALID = "ADMIN_SESSION_INVALID"

    # Configuration errors
    CONFIG_ERROR = "CONFIG_ERROR"


class NowPlayingException(Exception):
    """Base exception with HTTP status code support.

    All custom exceptions inherit from this class so the error handler can
    render them as `{"success": false, ...}` JSON.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.NOW_PLAYING_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            code: Error code from ErrorCode enum
            status_code: HTTP status code (default 500)
            details: Additional error context/details
        """
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class SpotifyException(NowPlayingException):
    """Spotify-related errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.SPOTIFY_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code, status_code, details)


class SpotifyAuthException(SpotifyException):
    """OAuth token exchange failed (network, non-2xx or bad payload)."""

    def __init__(
        self,
        message: str = "Spotify authentication failed",
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.SPOTIFY_AUTH_ERROR,
    ):
        super().__init__(message, code=code, status_code=400, details=details)


class SpotifyNotAuthenticatedException(SpotifyAuthException):
    """No refresh token has been stored yet."""

    def __init__(self, message: str = "No refresh token available", details: dict[str, Any] | None = None):
        super().__init__(message, details=details, code=ErrorCode.SPOTIFY_NOT_AUTHENTICATED)


class SpotifyFetchException(SpotifyException):
    """Now-playing fetch failed for a reason other than "nothing playing"."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code=ErrorCode.SPOTIFY_FETCH_ERROR,
            status_code=424,
            details=details,
        )


class PersistenceException(NowPlayingException):
    """Refresh token could not be written to durable storage."""

    def __init__(self, message: str = "Failed to save refresh token", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code=ErrorCode.PERSISTENCE_ERROR,
            status_code=500,
            details=details,
        )


class AdminSessionException(NowPlayingException):
    """Admin cookie or client IP did not match the active admin session."""

    def __init__(self, message: str = "Invalid admin session", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code=ErrorCode.ADMIN_SESSION_INVALID,
            status_code=400,
            details=details,
        )


class ConfigurationException(NowPlayingException):
    """Configuration errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code=ErrorCode.CONFIG_ERROR, status_code=500, details=details)
