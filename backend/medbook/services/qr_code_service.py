"""
Attendance QR codes: generation, regeneration, deactivation and scanning.

Codes are never deleted. Regenerating deactivates the old rows and adds a
new one, so the scan log keeps pointing at the code that was scanned. The
newest row for an event is the one scans are checked against.
"""

from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.config import get_settings
from medbook.core.errors import ApiError, bad_request, forbidden, not_found
from medbook.core.logging import get_logger
from medbook.core.metrics import record_qr_scan
from medbook.core.security import RequestContext
from medbook.domain import qr
from medbook.domain.lifecycle import Actor, BookingStatus
from medbook.models.event import Event
from medbook.models.qr_code import EventQRCode, QRCodeScan
from medbook.schemas.qr_code import QRCodeGenerateRequest, ScanDetails, ScanRequest, ScanSuccess
from medbook.services import booking_service
from medbook.services.event_service import get_event
from medbook.services.notification_service import enqueue_feedback_request

logger = get_logger(__name__)
settings = get_settings()


async def get_latest_qr_code(db: AsyncSession, event_id: int) -> Optional[EventQRCode]:
    result = await db.execute(
        select(EventQRCode)
        .where(EventQRCode.event_id == event_id)
        .order_by(EventQRCode.created_at.desc(), EventQRCode.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def count_successful_scans(db: AsyncSession, qr_code_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(QRCodeScan)
        .where(QRCodeScan.qr_code_id == qr_code_id, QRCodeScan.scan_success.is_(True))
    )
    return result.scalar() or 0


def _window_for(event: Event, data: QRCodeGenerateRequest) -> qr.ScanWindow:
    try:
        return qr.resolve_window(
            event.starts_at,
            event.ends_at,
            data.scan_window_start,
            data.scan_window_end,
            settings.QR_SCAN_WINDOW_LEAD_MINUTES,
            settings.QR_SCAN_WINDOW_TRAIL_MINUTES,
        )
    except qr.ScanWindowError as e:
        raise bad_request(str(e))


async def _new_code(db: AsyncSession, event: Event, window: qr.ScanWindow) -> EventQRCode:
    code = EventQRCode(
        event_id=event.id,
        qr_code_data=qr.build_payload(settings.PUBLIC_BASE_URL, settings.QR_SCAN_PATH, event.id),
        active=True,
        scan_window_start=window.start,
        scan_window_end=window.end,
    )
    db.add(code)
    await db.flush()
    return code


async def _event_for_codes(db: AsyncSession, event_id: int) -> Event:
    event = await get_event(db, event_id)
    if not event.qr_attendance_enabled:
        raise bad_request("Event must have QR attendance enabled to generate QR code")
    return event


async def generate_qr_code(db: AsyncSession, data: QRCodeGenerateRequest) -> EventQRCode:
    event = await _event_for_codes(db, data.event_id)

    result = await db.execute(
        select(EventQRCode.id).where(EventQRCode.event_id == event.id, EventQRCode.active.is_(True))
    )
    if result.first() is not None:
        raise bad_request("QR code already exists for this event")

    code = await _new_code(db, event, _window_for(event, data))
    logger.info("qr_code_generated", event_id=event.id, qr_code_id=code.id)
    return code


async def regenerate_qr_code(db: AsyncSession, data: QRCodeGenerateRequest) -> EventQRCode:
    event = await _event_for_codes(db, data.event_id)
    window = _window_for(event, data)

    await db.execute(
        update(EventQRCode)
        .where(EventQRCode.event_id == event.id, EventQRCode.active.is_(True))
        .values(active=False)
        .execution_options(synchronize_session=False)
    )
    code = await _new_code(db, event, window)
    logger.info("qr_code_regenerated", event_id=event.id, qr_code_id=code.id)
    return code


async def get_qr_code(db: AsyncSession, event_id: int) -> tuple[EventQRCode, int]:
    code = await get_latest_qr_code(db, event_id)
    if code is None:
        raise not_found("QR code not found for this event")
    return code, await count_successful_scans(db, code.id)


async def deactivate_qr_code(db: AsyncSession, ctx: RequestContext, event_id: int) -> None:
    # stricter than generation: only the plain admin role may switch a code off
    if ctx.role != "admin":
        raise forbidden("Admin role required")

    result = await db.execute(
        update(EventQRCode)
        .where(EventQRCode.event_id == event_id)
        .values(active=False)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise not_found("QR code not found for this event")
    logger.info("qr_code_deactivated", event_id=event_id)


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------

def resolve_event_id(data: ScanRequest) -> int:
    if data.event_id is not None:
        return data.event_id
    if not data.qr_code_data:
        raise bad_request("Missing required field: qrCodeData or eventId")
    event_id = qr.parse_event_id(data.qr_code_data)
    if event_id is None:
        raise bad_request("Invalid QR code")
    return event_id


async def _reject(
    db: AsyncSession,
    ctx: RequestContext,
    qr_code_id: int,
    error: ApiError,
    booking_id: Optional[int] = None,
) -> ApiError:
    """Log a failed scan and commit it before the error unwinds the request."""
    db.add(
        QRCodeScan(
            qr_code_id=qr_code_id,
            user_id=ctx.user_id,
            booking_id=booking_id,
            scanned_at=ctx.now,
            scan_success=False,
            failure_reason=str(error.detail)[:255],
        )
    )
    await db.commit()
    record_qr_scan("rejected")
    logger.info("qr_scan_rejected", qr_code_id=qr_code_id, reason=error.detail)
    return error


async def _previous_success(db: AsyncSession, qr_code_id: int, user_id: int) -> Optional[QRCodeScan]:
    result = await db.execute(
        select(QRCodeScan)
        .where(
            QRCodeScan.qr_code_id == qr_code_id,
            QRCodeScan.user_id == user_id,
            QRCodeScan.scan_success.is_(True),
        )
        .order_by(QRCodeScan.scanned_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def scan(db: AsyncSession, ctx: RequestContext, data: ScanRequest) -> ScanSuccess:
    """
    Mark the caller's attendance from a scanned code.

    Callers without a booking are still recorded as present; callers with a
    confirmed or waitlisted booking are moved to attended. Scanning the same
    code again after a success is reported as a duplicate, not an error.
    """
    event_id = resolve_event_id(data)

    code = await get_latest_qr_code(db, event_id)
    if code is None:
        record_qr_scan("rejected")
        raise not_found("QR code not found")
    qr_code_id = code.id

    if not code.active:
        raise await _reject(db, ctx, qr_code_id, bad_request("QR code is inactive"))

    window = qr.ScanWindow(code.scan_window_start, code.scan_window_end)
    if window.is_before(ctx.now):
        raise await _reject(db, ctx, qr_code_id, bad_request(
            "QR code scanning is not yet active",
            {"scanWindowStart": window.start.isoformat(), "currentTime": ctx.now.isoformat()},
        ))
    if window.is_after(ctx.now):
        raise await _reject(db, ctx, qr_code_id, bad_request(
            "QR code scanning has expired",
            {"scanWindowEnd": window.end.isoformat(), "currentTime": ctx.now.isoformat()},
        ))

    event = await get_event(db, event_id)
    booking = await booking_service.find_live_booking(db, event_id, ctx.user_id)
    booking_id = booking.id if booking is not None else None

    previous = await _previous_success(db, qr_code_id, ctx.user_id)
    if previous is not None:
        record_qr_scan("duplicate")
        logger.info("qr_scan_duplicate", qr_code_id=qr_code_id, event_id=event_id)
        return ScanSuccess(
            message="Attendance already marked for this event",
            details=ScanDetails(
                event_title=event.title,
                event_date=event.starts_at,
                checked_in_at=previous.scanned_at,
                has_booking=booking is not None,
                duplicate=True,
            ),
        )

    if booking is not None:
        if booking.checked_in:
            raise await _reject(db, ctx, qr_code_id, bad_request(
                "Attendance already marked for this event",
                {"checkedInAt": booking.checked_in_at.isoformat() if booking.checked_in_at else None},
            ), booking_id)
        if booking.status not in (BookingStatus.CONFIRMED, BookingStatus.WAITLIST):
            raise await _reject(
                db, ctx, qr_code_id, bad_request("Booking status does not allow attendance marking"), booking_id
            )
        try:
            await booking_service.apply_transition(db, booking, BookingStatus.ATTENDED, Actor.ATTENDANCE, ctx)
        except ApiError as e:
            await db.rollback()
            raise await _reject(db, ctx, qr_code_id, e, booking_id)

    db.add(
        QRCodeScan(
            qr_code_id=qr_code_id,
            user_id=ctx.user_id,
            booking_id=booking_id,
            scanned_at=ctx.now,
            scan_success=True,
        )
    )
    await db.flush()

    feedback_queued = False
    if event.feedback_enabled:
        feedback_queued = await enqueue_feedback_request(
            recipient_email=ctx.email,
            recipient_name=ctx.name,
            event_id=event.id,
            event_title=event.title,
            event_starts_at=event.starts_at,
        )

    record_qr_scan("success")
    logger.info("qr_scan_accepted", qr_code_id=qr_code_id, event_id=event_id, booking_id=booking_id)

    return ScanSuccess(
        message="Attendance marked successfully" if booking is not None else "Attendance recorded successfully",
        details=ScanDetails(
            event_title=event.title,
            event_date=event.starts_at,
            checked_in_at=ctx.now,
            has_booking=booking is not None,
            feedback_email_sent=feedback_queued,
        ),
    )
