from medbook.schemas.user import UserCreate, UserResponse, UserLogin, UserSummary, Token
from medbook.schemas.event import EventCreate, EventResponse, EventListResponse, BookingEventSummary
from medbook.schemas.booking import (
    BookingCreate,
    BookingUpdate,
    BookingResponse,
    BookingEnvelope,
    BookingStatusResponse,
    EventBookingsResponse,
)
from medbook.schemas.qr_code import (
    QRCodeGenerateRequest,
    QRCodeEnvelope,
    ScanRequest,
    ScanSuccess,
    ScanFailure,
    ScanOutcome,
)

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "UserSummary", "Token",
    "EventCreate", "EventResponse", "EventListResponse", "BookingEventSummary",
    "BookingCreate", "BookingUpdate", "BookingResponse", "BookingEnvelope",
    "BookingStatusResponse", "EventBookingsResponse",
    "QRCodeGenerateRequest", "QRCodeEnvelope", "ScanRequest", "ScanSuccess",
    "ScanFailure", "ScanOutcome",
]
