"""
Python client for the booking API: the booking button controller and the
QR attendance scan session.
"""

from .api import BookingClient
from .controller import BookingController, BookingView, ViewKind, derive_view
from .errors import (
    ApiRequestError,
    AuthenticationRequired,
    BookingClientError,
    BookingValidationError,
    CameraAccessError,
    CameraError,
    CameraNotFound,
    CameraPermissionDenied,
    NetworkError,
    camera_error,
)
from .notifier import LogNotifier, Notifier
from .scanner import ScanSession, ScanState

__all__ = [
    "BookingClient",
    "BookingController",
    "BookingView",
    "ViewKind",
    "derive_view",
    "ApiRequestError",
    "AuthenticationRequired",
    "BookingClientError",
    "BookingValidationError",
    "CameraAccessError",
    "CameraError",
    "CameraNotFound",
    "CameraPermissionDenied",
    "NetworkError",
    "camera_error",
    "LogNotifier",
    "Notifier",
    "ScanSession",
    "ScanState",
]
