"""
Errors raised by the booking client and the attendance scanner.
"""

from typing import Any, Optional


class BookingClientError(Exception):
    """Base class for everything the client raises."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BookingValidationError(BookingClientError):
    """A local precondition failed; no request was sent."""


class AuthenticationRequired(BookingClientError):
    """The server rejected the credentials. The caller should sign in again."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ApiRequestError(BookingClientError):
    """The server answered with an error body."""

    def __init__(self, status_code: int, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class NetworkError(BookingClientError):
    """The request never got an answer."""


class CameraError(Exception):
    user_message = "Failed to access camera. Please try again."


class CameraPermissionDenied(CameraError):
    user_message = "Camera permission denied. Please allow camera access and try again."


class CameraNotFound(CameraError):
    user_message = "No camera found. Please ensure you have a camera connected."


class CameraAccessError(CameraError):
    pass


_CAMERA_ERRORS = {
    "NotAllowedError": CameraPermissionDenied,
    "NotFoundError": CameraNotFound,
}


def camera_error(name: str, message: str = "") -> CameraError:
    """Map a platform media error name (NotAllowedError, ...) to our taxonomy."""
    return _CAMERA_ERRORS.get(name, CameraAccessError)(message or name)
