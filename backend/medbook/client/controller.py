"""
Booking button controller.

Holds the latest status for one event and derives what the booking button
shows. Every successful mutation is followed by a re-fetch, so the view
always reflects the server's decision rather than a local guess. Failures
are reported through the notifier and never retried.
"""

from dataclasses import dataclass
from typing import Optional

from medbook.client.api import BookingClient
from medbook.client.errors import AuthenticationRequired, BookingClientError
from medbook.client.notifier import LogNotifier, Notifier
from medbook.core.logging import get_logger
from medbook.domain.availability import Availability
from medbook.domain.lifecycle import BookingStatus
from medbook.schemas.booking import BookingStatusResponse

logger = get_logger(__name__)

CANCELLABLE = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.WAITLIST})


class ViewKind:
    LOADING = "loading"
    REGISTER = "register"
    JOIN_WAITLIST = "join_waitlist"
    FULL = "full"
    CLOSED = "closed"
    DISABLED = "disabled"
    BOOKED = "booked"


@dataclass(frozen=True)
class BookingView:
    kind: str
    label: Optional[str] = None
    booking_status: Optional[str] = None
    can_cancel: bool = False
    confirmed_count: Optional[int] = None
    capacity: Optional[int] = None
    available_slots: Optional[int] = None


def derive_view(status: Optional[BookingStatusResponse]) -> BookingView:
    if status is None:
        return BookingView(ViewKind.LOADING)

    event = status.event
    availability = status.availability
    counts = {
        "confirmed_count": availability.confirmed_count,
        "capacity": event.booking_capacity,
        "available_slots": availability.available_slots,
    }

    if not event.booking_enabled:
        return BookingView(ViewKind.DISABLED)

    booking = status.booking
    if booking is not None and booking.status != BookingStatus.CANCELLED:
        return BookingView(
            ViewKind.BOOKED,
            booking_status=booking.status,
            can_cancel=booking.id is not None and booking.status in CANCELLABLE,
            **counts,
        )

    if availability.status == Availability.CLOSED:
        return BookingView(ViewKind.CLOSED, label="Booking Closed", **counts)
    if availability.status == Availability.FULL:
        return BookingView(ViewKind.FULL, label="Event Full", **counts)
    if availability.status == Availability.WAITLIST:
        return BookingView(ViewKind.JOIN_WAITLIST, label="Join Waitlist", **counts)
    if availability.status == Availability.DISABLED:
        return BookingView(ViewKind.DISABLED)
    return BookingView(ViewKind.REGISTER, label=event.booking_button_label or "Register", **counts)


class BookingController:
    def __init__(self, client: BookingClient, event_id: int, notifier: Optional[Notifier] = None):
        self.client = client
        self.event_id = event_id
        self.notifier = notifier or LogNotifier()
        self.status: Optional[BookingStatusResponse] = None
        self.error: Optional[str] = None

    def view(self) -> BookingView:
        return derive_view(self.status)

    async def refresh(self) -> Optional[BookingStatusResponse]:
        try:
            self.status = await self.client.fetch_status(self.event_id)
        except AuthenticationRequired:
            raise
        except BookingClientError as e:
            logger.warning("booking_status_fetch_failed", event_id=self.event_id, error=e.message)
            self.error = "Failed to load booking information"
            self.notifier.error(self.error)
            return None
        self.error = None
        return self.status

    async def book(
        self,
        *,
        checkbox_1: bool = False,
        checkbox_2: bool = False,
        policy_accepted: bool = False,
        notes: Optional[str] = None,
    ) -> bool:
        """Submit a booking. Returns True if the server accepted it."""
        if self.status is None and await self.refresh() is None:
            return False

        try:
            result = await self.client.submit_booking(
                self.status.event,
                checkbox_1=checkbox_1,
                checkbox_2=checkbox_2,
                policy_accepted=policy_accepted,
                notes=notes,
            )
        except AuthenticationRequired:
            raise
        except BookingClientError as e:
            self.notifier.error(e.message or "Failed to register for the event")
            return False

        self.notifier.success(result.message or "Successfully registered for the event!")
        await self.refresh()
        return True

    async def cancel(self, reason: str) -> bool:
        """Cancel the caller's booking. Returns True if the server accepted it."""
        booking = self.status.booking if self.status else None
        if booking is None or booking.id is None:
            self.notifier.error("Booking not found")
            return False

        try:
            await self.client.cancel_booking(booking.id, reason)
        except AuthenticationRequired:
            raise
        except BookingClientError as e:
            self.notifier.error(e.message or "Failed to cancel booking")
            return False

        self.notifier.success("Booking cancelled successfully")
        await self.refresh()
        return True
