"""
CSV exports for the admin console: an event's bookings and its attendance
scan log with summary statistics.
"""

import csv
import io
import re
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.errors import not_found
from medbook.core.logging import get_logger
from medbook.models.booking import Booking
from medbook.models.event import Event
from medbook.models.qr_code import EventQRCode, QRCodeScan
from medbook.models.user import User
from medbook.services.booking_service import list_event_bookings
from medbook.services.event_service import get_event

logger = get_logger(__name__)

BOOKING_COLUMNS = [
    "Booking ID",
    "User Name",
    "User Email",
    "Status",
    "Booked At",
    "Checked In",
    "Checked In At",
    "Cancelled At",
    "Cancellation Reason",
    "Notes",
]

ATTENDANCE_COLUMNS = [
    "User Name",
    "User Email",
    "Scanned At",
    "Scan Success",
    "Failure Reason",
    "Booking Status",
]


def _fmt(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


def _yes_no(value: bool) -> str:
    return "Yes" if value else "No"


def export_filename(prefix: str, event: Event) -> str:
    slug = re.sub(r"[^a-z0-9]", "_", event.title.lower())
    return f"{prefix}-{slug}-{event.starts_at.date().isoformat()}.csv"


def _render(rows: list[list]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


async def export_bookings_csv(db: AsyncSession, event_id: int) -> tuple[Event, str]:
    event, bookings, summary = await list_event_bookings(db, event_id)

    rows: list[list] = [BOOKING_COLUMNS]
    for booking in bookings:
        user = booking.user
        rows.append([
            booking.id,
            (user.name if user else None) or "Unknown User",
            user.email if user else "No email",
            booking.status,
            _fmt(booking.booked_at),
            _yes_no(booking.checked_in),
            _fmt(booking.checked_in_at),
            _fmt(booking.cancelled_at),
            booking.cancellation_reason or "",
            booking.notes or "",
        ])

    rows.append([])
    rows.append(["SUMMARY"])
    for label, key in (
        ("Total", "total"),
        ("Confirmed", "confirmed"),
        ("Waitlist", "waitlist"),
        ("Pending", "pending"),
        ("Cancelled", "cancelled"),
        ("Attended", "attended"),
        ("No Show", "no_show"),
        ("Checked In", "checked_in"),
    ):
        rows.append([label, summary[key]])
    rows.append(["Capacity", summary["capacity"] if summary["capacity"] is not None else "Unlimited"])

    logger.info("bookings_exported", event_id=event_id, rows=len(bookings))
    return event, _render(rows)


async def export_attendance_csv(db: AsyncSession, event_id: int, now: datetime) -> tuple[Event, str]:
    event = await get_event(db, event_id)

    code_ids = (
        await db.execute(select(EventQRCode.id).where(EventQRCode.event_id == event_id))
    ).scalars().all()
    if not code_ids:
        raise not_found("No QR code found for this event")

    result = await db.execute(
        select(QRCodeScan, User)
        .join(User, User.id == QRCodeScan.user_id)
        .where(QRCodeScan.qr_code_id.in_(code_ids))
        .order_by(QRCodeScan.scanned_at.desc(), QRCodeScan.id.desc())
    )
    scans = result.all()

    booking_rows = await db.execute(
        select(Booking.user_id, Booking.status)
        .where(Booking.event_id == event_id, Booking.deleted_at.is_(None))
        .order_by(Booking.booked_at.asc())
    )
    # the latest booking per user wins
    booking_status = {user_id: status for user_id, status in booking_rows.all()}

    rows: list[list] = [ATTENDANCE_COLUMNS]
    for scan, user in scans:
        rows.append([
            user.name or "Unknown User",
            user.email or "No email",
            _fmt(scan.scanned_at),
            _yes_no(scan.scan_success),
            scan.failure_reason or "",
            booking_status.get(scan.user_id, "N/A"),
        ])

    total = len(scans)
    successful = sum(1 for scan, _ in scans if scan.scan_success)
    unique_attendees = len({scan.user_id for scan, _ in scans})
    success_rate = f"{round(successful / total * 100)}%" if total else "0%"

    rows.extend([
        [],
        ["SUMMARY STATISTICS"],
        ["Total Scans", total],
        ["Successful Scans", successful],
        ["Failed Scans", total - successful],
        ["Unique Attendees", unique_attendees],
        ["Success Rate", success_rate],
        [],
        ["EVENT DETAILS"],
        ["Event Title", event.title],
        ["Starts At", _fmt(event.starts_at)],
        ["Ends At", _fmt(event.ends_at)],
        ["Export Date", _fmt(now)],
    ])

    logger.info("attendance_exported", event_id=event_id, scans=total)
    return event, _render(rows)
