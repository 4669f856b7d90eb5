"""
Event model with booking configuration and a denormalized confirmed counter.

Key design decisions:
- `confirmed_count` mirrors the number of seat-holding bookings (confirmed,
  attended, no_show) so capacity checks are a single conditional UPDATE
  instead of a COUNT under lock
- `version` column enables optimistic locking of that counter
- `booking_capacity` NULL means unlimited
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from medbook.db.base import Base, TimestampMixin
from medbook.db.types import UTCDateTime


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    starts_at = Column(UTCDateTime(), nullable=False)
    ends_at = Column(UTCDateTime(), nullable=False)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Booking configuration
    booking_enabled = Column(Boolean, nullable=False, default=False)
    booking_capacity = Column(Integer, nullable=True)
    allow_waitlist = Column(Boolean, nullable=False, default=True)
    approval_mode = Column(String(20), nullable=False, default="auto")  # auto, manual
    booking_deadline_hours = Column(Integer, nullable=False, default=0)
    cancellation_deadline_hours = Column(Integer, nullable=False, default=0)
    booking_button_label = Column(String(100), nullable=True)
    confirmation_checkbox_1_text = Column(String(500), nullable=True)
    confirmation_checkbox_1_required = Column(Boolean, nullable=False, default=True)
    confirmation_checkbox_2_text = Column(String(500), nullable=True)
    confirmation_checkbox_2_required = Column(Boolean, nullable=False, default=False)

    # Attendance / follow-up
    qr_attendance_enabled = Column(Boolean, nullable=False, default=False)
    feedback_enabled = Column(Boolean, nullable=False, default=False)
    auto_generate_certificate = Column(Boolean, nullable=False, default=False)
    feedback_required_for_certificate = Column(Boolean, nullable=False, default=False)

    # Capacity bookkeeping
    confirmed_count = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)

    bookings = relationship("Booking", back_populates="event", lazy="raise")
    qr_codes = relationship("EventQRCode", back_populates="event", lazy="raise")

    __table_args__ = (
        CheckConstraint("confirmed_count >= 0", name="check_confirmed_count_non_negative"),
        CheckConstraint(
            "booking_capacity IS NULL OR booking_capacity > 0",
            name="check_booking_capacity_positive",
        ),
        CheckConstraint(
            "booking_capacity IS NULL OR confirmed_count <= booking_capacity",
            name="check_confirmed_lte_capacity",
        ),
        CheckConstraint("ends_at >= starts_at", name="check_event_ends_after_start"),
        CheckConstraint("approval_mode IN ('auto', 'manual')", name="check_event_approval_mode"),
        Index("ix_events_starts_at", "starts_at"),
    )

    @property
    def available_slots(self) -> int | None:
        if self.booking_capacity is None:
            return None
        return max(0, self.booking_capacity - self.confirmed_count)

    def __repr__(self) -> str:
        return (
            f"<Event(id={self.id}, title={self.title}, "
            f"confirmed={self.confirmed_count}/{self.booking_capacity})>"
        )
