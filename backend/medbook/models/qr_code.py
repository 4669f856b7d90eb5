"""
Per-event attendance QR codes and the scan log.

An event may accumulate several code rows over time (regeneration); the
newest row is the one scans are validated against.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from medbook.db.base import Base, TimestampMixin
from medbook.db.types import UTCDateTime


class EventQRCode(Base, TimestampMixin):
    __tablename__ = "event_qr_codes"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    qr_code_data = Column(Text, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    scan_window_start = Column(UTCDateTime(), nullable=False)
    scan_window_end = Column(UTCDateTime(), nullable=False)

    event = relationship("Event", back_populates="qr_codes", lazy="raise")
    scans = relationship("QRCodeScan", back_populates="qr_code", cascade="all, delete-orphan", lazy="raise")

    def __repr__(self) -> str:
        return f"<EventQRCode(id={self.id}, event={self.event_id}, active={self.active})>"


class QRCodeScan(Base):
    __tablename__ = "qr_code_scans"

    id = Column(Integer, primary_key=True, index=True)
    qr_code_id = Column(Integer, ForeignKey("event_qr_codes.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    booking_id = Column(Integer, ForeignKey("event_bookings.id", ondelete="SET NULL"), nullable=True)
    scanned_at = Column(UTCDateTime(), nullable=False)
    scan_success = Column(Boolean, nullable=False, default=True)
    failure_reason = Column(String(255), nullable=True)

    qr_code = relationship("EventQRCode", back_populates="scans", lazy="raise")

    __table_args__ = (
        Index("ix_qr_code_scans_lookup", "qr_code_id", "user_id", "scan_success"),
    )
