"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from medbook.db.types import as_utc


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    starts_at: datetime
    ends_at: datetime

    booking_enabled: bool = True
    booking_capacity: Optional[int] = Field(None, gt=0, le=100000)
    allow_waitlist: bool = True
    approval_mode: Literal["auto", "manual"] = "auto"
    booking_deadline_hours: int = Field(0, ge=0, le=24 * 365)
    cancellation_deadline_hours: int = Field(0, ge=0, le=24 * 365)
    booking_button_label: Optional[str] = Field(None, max_length=100)
    confirmation_checkbox_1_text: Optional[str] = Field(None, max_length=500)
    confirmation_checkbox_1_required: bool = True
    confirmation_checkbox_2_text: Optional[str] = Field(None, max_length=500)
    confirmation_checkbox_2_required: bool = False

    qr_attendance_enabled: bool = False
    feedback_enabled: bool = False
    auto_generate_certificate: bool = False
    feedback_required_for_certificate: bool = False

    @field_validator("starts_at", "ends_at")
    @classmethod
    def naive_times_are_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode="after")
    def check_times(self) -> "EventCreate":
        if self.ends_at < self.starts_at:
            raise ValueError("ends_at must not be before starts_at")
        return self


class BookingEventSummary(BaseModel):
    """Event fields a booking UI needs to render the booking form."""

    id: int
    title: str
    starts_at: datetime
    ends_at: datetime
    location: Optional[str] = None
    booking_enabled: bool
    booking_capacity: Optional[int] = None
    booking_button_label: Optional[str] = None
    allow_waitlist: bool
    approval_mode: str = "auto"
    booking_deadline_hours: int = 0
    cancellation_deadline_hours: int = 0
    confirmation_checkbox_1_text: Optional[str] = None
    confirmation_checkbox_1_required: bool = False
    confirmation_checkbox_2_text: Optional[str] = None
    confirmation_checkbox_2_required: bool = False

    model_config = {"from_attributes": True}


class EventResponse(BookingEventSummary):
    description: Optional[str] = None
    confirmed_count: int
    available_slots: Optional[int] = None
    qr_attendance_enabled: bool
    feedback_enabled: bool
    auto_generate_certificate: bool
    feedback_required_for_certificate: bool
    organizer_id: Optional[int] = None
    created_at: datetime


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False
