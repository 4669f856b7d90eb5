"""
Pydantic schemas for booking requests and responses.

Booking records use snake_case field names; the envelopes around them use
the camelCase keys the web client already speaks (hasBooking,
confirmedCount, ...). Aliases are accepted on input too, so the Python
client parses server JSON with the same models.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from medbook.schemas.event import BookingEventSummary, EventResponse
from medbook.schemas.user import UserSummary

BookingStatusLiteral = Literal["pending", "confirmed", "waitlist", "cancelled", "attended", "no_show"]


class BookingCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event_id: int = Field(alias="eventId")
    confirmation_checkbox_1_checked: bool = Field(default=False, alias="confirmationCheckbox1Checked")
    confirmation_checkbox_2_checked: bool = Field(default=False, alias="confirmationCheckbox2Checked")
    notes: Optional[str] = Field(default=None, max_length=2000)


class BookingUpdate(BaseModel):
    status: Optional[BookingStatusLiteral] = None
    cancellation_reason: Optional[str] = Field(
        default=None,
        max_length=1000,
        validation_alias=AliasChoices("cancellation_reason", "cancellation"),
    )
    notes: Optional[str] = Field(default=None, max_length=2000)
    checked_in: Optional[bool] = None


class BookingResponse(BaseModel):
    id: int
    event_id: int
    user_id: int
    status: BookingStatusLiteral
    booked_at: datetime
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    checked_in: bool = False
    checked_in_at: Optional[datetime] = None
    confirmation_checkbox_1_checked: bool = False
    confirmation_checkbox_2_checked: bool = False
    notes: Optional[str] = None
    certificates_generated: bool = False
    certificate_email_sent: bool = False

    model_config = {"from_attributes": True}


class BookingWithEvent(BookingResponse):
    event: Optional[BookingEventSummary] = None


class BookingEnvelope(BaseModel):
    booking: BookingResponse
    message: str


class BookingListResponse(BaseModel):
    success: bool = True
    bookings: list[BookingWithEvent]
    count: int


class BookingState(BaseModel):
    """The caller's booking as seen by the status check.

    `id` is None when the caller has no booking but did scan in.
    """

    id: Optional[int] = None
    status: BookingStatusLiteral
    booked_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    checked_in: bool = False
    checked_in_at: Optional[datetime] = None
    confirmation_checkbox_1_checked: bool = False
    confirmation_checkbox_2_checked: bool = False

    model_config = {"from_attributes": True}


class AvailabilityResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: Literal["available", "waitlist", "full", "closed", "disabled"]
    confirmed_count: int = Field(alias="confirmedCount")
    available_slots: Optional[int] = Field(default=None, alias="availableSlots")
    is_booking_open: bool = Field(alias="isBookingOpen")
    deadline: datetime


class BookingStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event: BookingEventSummary
    has_booking: bool = Field(alias="hasBooking")
    booking: Optional[BookingState] = None
    availability: AvailabilityResponse


class AdminBookingRow(BookingResponse):
    user: Optional[UserSummary] = None


class BookingSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    pending: int
    confirmed: int
    waitlist: int
    cancelled: int
    attended: int
    no_show: int = Field(alias="noShow")
    checked_in: int = Field(alias="checkedIn")
    capacity: Optional[int] = None
    available_slots: Optional[int] = Field(default=None, alias="availableSlots")


class EventBookingsResponse(BaseModel):
    bookings: list[AdminBookingRow]
    event: EventResponse
    summary: BookingSummary


class PromotionResponse(BaseModel):
    promoted: list[int]
    message: str


class MessageResponse(BaseModel):
    message: str
