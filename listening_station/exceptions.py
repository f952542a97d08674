"""Custom exceptions for the Listening Station with HTTP status codes."""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error responses."""

    # Generic errors
    STATION_ERROR = "STATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Intent validation
    NO_SOURCE_SELECTED = "NO_SOURCE_SELECTED"
    DEVICE_NOT_READY = "DEVICE_NOT_READY"

    # Device calls
    DEVICE_REQUEST_ERROR = "DEVICE_REQUEST_ERROR"
    TRANSFER_FAILED = "TRANSFER_FAILED"
    PLAYBACK_REQUEST_FAILED = "PLAYBACK_REQUEST_FAILED"

    # Credentials
    AUTHENTICATION_EXPIRED = "AUTHENTICATION_EXPIRED"

    # Catalog
    CATALOG_ERROR = "CATALOG_ERROR"
    PARTIAL_CATALOG_LOAD = "PARTIAL_CATALOG_LOAD"

    # Configuration errors
    CONFIG_ERROR = "CONFIG_ERROR"


class StationException(Exception):
    """Base exception for station errors with HTTP status code support.

    All custom exceptions inherit from this class so the API can render
    them consistently.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.STATION_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        """Initialize station exception.

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


class NoSourceSelected(StationException):
    """A playback intent arrived without any source to play."""

    def __init__(self, message: str = "No source selected", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code=ErrorCode.NO_SOURCE_SELECTED,
            status_code=400,
            details=details,
        )


class DeviceNotReady(StationException):
    """The playback device is not registered and ready."""

    def __init__(self, message: str = "Playback device is not ready", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code=ErrorCode.DEVICE_NOT_READY,
            status_code=409,
            details=details,
        )


class DeviceRequestError(StationException):
    """A call to the device control surface failed."""

    def __init__(self, message: str, status_code: int = 502, details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code=ErrorCode.DEVICE_REQUEST_ERROR,
            status_code=status_code,
            details=details,
        )


class TransferFailed(StationException):
    """Playback ownership could not be moved to this device."""

    def __init__(self, message: str = "Failed to transfer playback", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code=ErrorCode.TRANSFER_FAILED,
            status_code=502,
            details=details,
        )


class PlaybackRequestFailed(StationException):
    """The device rejected a playback request."""

    def __init__(self, message: str = "Playback request failed", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code=ErrorCode.PLAYBACK_REQUEST_FAILED,
            status_code=502,
            details=details,
        )


class AuthenticationExpired(StationException):
    """The access credential expired or was revoked."""

    def __init__(self, message: str = "Authentication expired", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code=ErrorCode.AUTHENTICATION_EXPIRED,
            status_code=401,
            details=details,
        )


class CatalogException(StationException):
    """A source could not be resolved to tracks."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code=ErrorCode.CATALOG_ERROR,
            status_code=502,
            details=details,
        )


class ConfigurationException(StationException):
    """Configuration errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFIG_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code, status_code, details)
