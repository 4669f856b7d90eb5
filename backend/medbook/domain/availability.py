"""
Booking window, availability and admission rules.

Shared by the server (which decides) and the client (which pre-checks and
renders). Functions take any object with the event's booking attributes,
so both ORM rows and response models work.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional


class Availability:
    AVAILABLE = "available"
    WAITLIST = "waitlist"
    FULL = "full"
    CLOSED = "closed"
    DISABLED = "disabled"


@dataclass(frozen=True)
class AvailabilitySnapshot:
    status: str
    confirmed_count: int
    available_slots: Optional[int]
    is_booking_open: bool
    deadline: datetime


def booking_deadline(event) -> datetime:
    """Bookings close `booking_deadline_hours` before the start, or at the
    end of the event when the deadline is 0."""
    hours = event.booking_deadline_hours or 0
    if hours == 0:
        return event.ends_at
    return event.starts_at - timedelta(hours=hours)


def is_full(event, confirmed_count: int) -> bool:
    capacity = event.booking_capacity
    return capacity is not None and confirmed_count >= capacity


def available_slots(event, confirmed_count: int) -> Optional[int]:
    if event.booking_capacity is None:
        return None
    return max(0, event.booking_capacity - confirmed_count)


def evaluate(event, confirmed_count: int, now: datetime) -> AvailabilitySnapshot:
    deadline = booking_deadline(event)
    is_open = now < deadline

    if not event.booking_enabled:
        status = Availability.DISABLED
    elif not is_open:
        status = Availability.CLOSED
    elif is_full(event, confirmed_count):
        status = Availability.WAITLIST if event.allow_waitlist else Availability.FULL
    else:
        status = Availability.AVAILABLE

    return AvailabilitySnapshot(
        status=status,
        confirmed_count=confirmed_count,
        available_slots=available_slots(event, confirmed_count),
        is_booking_open=is_open,
        deadline=deadline,
    )


def missing_confirmations(event, checkbox_1: bool, checkbox_2: bool) -> list[str]:
    """Messages for each required confirmation checkbox left unchecked."""
    missing = []
    if event.confirmation_checkbox_1_required and not checkbox_1:
        missing.append("First confirmation checkbox is required")
    # the second checkbox only exists when it has text
    if event.confirmation_checkbox_2_text and event.confirmation_checkbox_2_required and not checkbox_2:
        missing.append("Second confirmation checkbox is required")
    return missing


def cancellation_cutoff_passed(event, now: datetime) -> bool:
    hours = event.cancellation_deadline_hours or 0
    if hours <= 0:
        return False
    return now > event.starts_at - timedelta(hours=hours)
