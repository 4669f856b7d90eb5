"""
Booking model representing a user's reservation for an event.

Key design decisions:
- Partial unique index allows at most one live booking per (user, event);
  cancelled and soft-deleted rows do not count, so a user can re-book
- `booked_at` is the waitlist ordering key (earliest first, id breaks ties)
- Status field keeps history instead of deleting records
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import relationship

from medbook.db.base import Base, TimestampMixin
from medbook.db.types import UTCDateTime
from medbook.domain.lifecycle import BookingStatus

_LIVE_BOOKING = text("status <> 'cancelled' AND deleted_at IS NULL")
_STATUS_LIST = ", ".join(f"'{s}'" for s in BookingStatus.ALL)


class Booking(Base, TimestampMixin):
    __tablename__ = "event_bookings"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED)
    booked_at = Column(UTCDateTime(), nullable=False, server_default=func.now())

    cancelled_at = Column(UTCDateTime(), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    checked_in = Column(Boolean, nullable=False, default=False)
    checked_in_at = Column(UTCDateTime(), nullable=True)

    confirmation_checkbox_1_checked = Column(Boolean, nullable=False, default=False)
    confirmation_checkbox_2_checked = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    certificates_generated = Column(Boolean, nullable=False, default=False)
    certificate_email_sent = Column(Boolean, nullable=False, default=False)

    deleted_at = Column(UTCDateTime(), nullable=True)
    deleted_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    user = relationship("User", back_populates="bookings", foreign_keys=[user_id], lazy="raise")
    event = relationship("Event", back_populates="bookings", lazy="raise")

    __table_args__ = (
        Index(
            "uq_live_booking_per_user_event",
            "event_id",
            "user_id",
            unique=True,
            postgresql_where=_LIVE_BOOKING,
            sqlite_where=_LIVE_BOOKING,
        ),
        # Waitlist promotion scans this in order
        Index("ix_event_bookings_queue", "event_id", "status", "booked_at"),
        CheckConstraint(f"status IN ({_STATUS_LIST})", name="check_booking_status"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, event={self.event_id}, status={self.status})>"
