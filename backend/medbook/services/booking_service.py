"""
Booking service: admission, status transitions and waitlist promotion.

CONCURRENCY STRATEGY: Optimistic Locking on the seat counter
=============================================================

Problem:
  Two users submit for the last seat at the same time. Both count
  confirmed_count = capacity - 1 and both get confirmed. Overbooked.
  Likewise two cancellations racing on a full event can both promote the
  same waitlisted booking, or promote past capacity.

Solution:
  Every seat change is a conditional UPDATE on the event row:

    UPDATE events
       SET confirmed_count = confirmed_count + :delta, version = version + 1
     WHERE id = :event_id AND version = :seen_version
       [AND confirmed_count + :delta <= booking_capacity]

  rowcount == 0 means someone else moved the counter first: re-read and
  retry (MAX_RETRY_ATTEMPTS), or report "full" if the re-read shows no seat.
  The CHECK constraint confirmed_count <= booking_capacity is the final net.

Waitlist promotion:
  When a seat holder leaves (confirmed -> cancelled), the seat is released
  and, in the same transaction, waitlisted bookings are promoted in
  (booked_at, id) order while seats remain. Candidate rows are read with
  FOR UPDATE SKIP LOCKED where the database supports it, so two concurrent
  promoters never pick the same booking; each promotion takes its seat
  through the same conditional UPDATE as a new booking.
"""

from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from medbook.core.config import get_settings
from medbook.core.errors import bad_request, conflict, forbidden, not_found
from medbook.core.logging import get_logger
from medbook.core.metrics import capacity_retries, record_booking_attempt, record_transition, waitlist_promotions
from medbook.core.security import RequestContext
from medbook.domain import availability
from medbook.domain.lifecycle import Actor, BookingStatus, TransitionError, assert_transition, seat_delta
from medbook.models.booking import Booking
from medbook.models.event import Event
from medbook.models.qr_code import EventQRCode, QRCodeScan
from medbook.schemas.booking import BookingCreate, BookingUpdate
from medbook.services.event_service import get_event

logger = get_logger(__name__)

MAX_RETRY_ATTEMPTS = get_settings().BOOKING_MAX_RETRY_ATTEMPTS

CREATE_MESSAGES = {
    BookingStatus.PENDING: "Booking submitted! Waiting for admin approval.",
    BookingStatus.CONFIRMED: "Successfully booked for this event!",
    BookingStatus.WAITLIST: (
        "You have been added to the waitlist. We will notify you if a spot becomes available."
    ),
}


# ---------------------------------------------------------------------------
# Seat counter
# ---------------------------------------------------------------------------

async def _change_seats(db: AsyncSession, event_id: int, delta: int) -> bool:
    """
    Move the event's seat counter by `delta` (+1 or -1).
    Returns False when taking a seat on a full event; raises 409 when the
    counter keeps changing under us.
    """
    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        event = await get_event(db, event_id, fresh=True)

        if delta > 0 and availability.is_full(event, event.confirmed_count):
            return False

        stmt = update(Event).where(Event.id == event_id, Event.version == event.version)
        if delta > 0 and event.booking_capacity is not None:
            stmt = stmt.where(Event.confirmed_count + delta <= Event.booking_capacity)
        stmt = stmt.values(
            confirmed_count=Event.confirmed_count + delta,
            version=Event.version + 1,
        ).execution_options(synchronize_session=False)

        result = await db.execute(stmt)
        if result.rowcount == 1:
            return True

        capacity_retries.inc()
        logger.info("seat_update_retry", event_id=event_id, attempt=attempt, reason="version_conflict")

    raise conflict("Booking failed due to high demand. Please try again.")


async def _take_seat(db: AsyncSession, event_id: int) -> bool:
    return await _change_seats(db, event_id, +1)


async def _release_seat(db: AsyncSession, event_id: int) -> None:
    await _change_seats(db, event_id, -1)


async def promote_waitlist(db: AsyncSession, event_id: int) -> list[int]:
    """Promote waitlisted bookings, earliest first, while seats are free."""
    promoted: list[int] = []
    while True:
        result = await db.execute(
            select(Booking)
            .where(
                Booking.event_id == event_id,
                Booking.status == BookingStatus.WAITLIST,
                Booking.deleted_at.is_(None),
            )
            .order_by(Booking.booked_at.asc(), Booking.id.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
        )
        candidate = result.scalar_one_or_none()
        if candidate is None:
            break
        if not await _take_seat(db, event_id):
            break

        candidate.status = BookingStatus.CONFIRMED
        await db.flush()
        promoted.append(candidate.id)

        waitlist_promotions.inc()
        record_transition(BookingStatus.WAITLIST, BookingStatus.CONFIRMED)
        logger.info("waitlist_promoted", event_id=event_id, booking_id=candidate.id, user_id=candidate.user_id)

    return promoted


async def apply_transition(
    db: AsyncSession,
    booking: Booking,
    target: str,
    actor: str,
    ctx: RequestContext,
) -> list[int]:
    """
    Move a booking to `target`, keeping the seat counter in step.
    Returns ids of waitlisted bookings promoted into a seat this freed.
    """
    current = booking.status
    try:
        assert_transition(current, target, actor)
    except TransitionError:
        if current == BookingStatus.CANCELLED:
            raise bad_request("Booking is already cancelled")
        raise bad_request(f"Cannot change booking from {current} to {target}")

    delta = seat_delta(current, target)
    if delta > 0 and not await _take_seat(db, booking.event_id):
        raise conflict("No seats available for this event")
    if delta < 0:
        await _release_seat(db, booking.event_id)

    booking.status = target
    if target == BookingStatus.CANCELLED:
        booking.cancelled_at = ctx.now
    if target == BookingStatus.ATTENDED and not booking.checked_in:
        booking.checked_in = True
        booking.checked_in_at = ctx.now
    await db.flush()

    record_transition(current, target)
    logger.info(
        "booking_status_changed",
        booking_id=booking.id,
        event_id=booking.event_id,
        from_status=current,
        to_status=target,
        actor=actor,
    )

    if delta < 0:
        return await promote_waitlist(db, booking.event_id)
    return []


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def find_live_booking(db: AsyncSession, event_id: int, user_id: int) -> Optional[Booking]:
    result = await db.execute(
        select(Booking).where(
            Booking.event_id == event_id,
            Booking.user_id == user_id,
            Booking.status != BookingStatus.CANCELLED,
            Booking.deleted_at.is_(None),
        )
    )
    return result.scalars().first()


async def get_booking(db: AsyncSession, booking_id: int, ctx: RequestContext) -> Booking:
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .options(selectinload(Booking.event), selectinload(Booking.user))
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise not_found("Booking not found")
    if not ctx.is_admin and booking.user_id != ctx.user_id:
        raise forbidden()
    return booking


async def get_user_bookings(db: AsyncSession, ctx: RequestContext) -> list[Booking]:
    """The caller's bookings, newest first, soft-deleted ones hidden."""
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == ctx.user_id, Booking.deleted_at.is_(None))
        .options(selectinload(Booking.event))
        .order_by(Booking.booked_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


async def _latest_successful_scan(db: AsyncSession, event_id: int, user_id: int) -> Optional[QRCodeScan]:
    result = await db.execute(
        select(QRCodeScan)
        .join(EventQRCode, EventQRCode.id == QRCodeScan.qr_code_id)
        .where(
            EventQRCode.event_id == event_id,
            QRCodeScan.user_id == user_id,
            QRCodeScan.scan_success.is_(True),
        )
        .order_by(QRCodeScan.scanned_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def check_booking_status(db: AsyncSession, ctx: RequestContext, event_id: int) -> dict:
    """
    Everything a booking button needs: the event's booking settings, the
    caller's live booking (or an attendance-only record when they scanned in
    without booking) and the current availability. Read-only.
    """
    event = await get_event(db, event_id)
    booking = await find_live_booking(db, event_id, ctx.user_id)

    state = None
    if booking is not None:
        state = booking
    else:
        scan = await _latest_successful_scan(db, event_id, ctx.user_id)
        if scan is not None:
            state = {
                "id": None,
                "status": BookingStatus.ATTENDED,
                "checked_in": True,
                "checked_in_at": scan.scanned_at,
            }

    snapshot = availability.evaluate(event, event.confirmed_count, ctx.now)
    return {
        "event": event,
        "has_booking": booking is not None,
        "booking": state,
        "availability": {
            "status": snapshot.status,
            "confirmed_count": snapshot.confirmed_count,
            "available_slots": snapshot.available_slots,
            "is_booking_open": snapshot.is_booking_open,
            "deadline": snapshot.deadline,
        },
    }


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

async def create_booking(db: AsyncSession, ctx: RequestContext, data: BookingCreate) -> tuple[Booking, str]:
    """
    Book the caller onto an event. The status is decided here, atomically:
    pending for manual-approval events, confirmed if a seat could be taken,
    otherwise waitlist (or a 400 when the event keeps no waitlist).
    """
    event = await get_event(db, data.event_id)

    if not event.booking_enabled:
        record_booking_attempt("rejected")
        raise bad_request("Booking is not enabled for this event")

    deadline = availability.booking_deadline(event)
    if ctx.now > deadline:
        record_booking_attempt("rejected")
        if event.booking_deadline_hours:
            raise bad_request(f"Booking deadline has passed ({event.booking_deadline_hours} hours before event)")
        raise bad_request("Booking deadline has passed (until event end)")

    existing = await find_live_booking(db, event.id, ctx.user_id)
    if existing is not None:
        record_booking_attempt("conflict")
        raise conflict(
            "You already have a booking for this event",
            details={"existingBooking": {"id": existing.id, "status": existing.status}},
        )

    missing = availability.missing_confirmations(
        event, data.confirmation_checkbox_1_checked, data.confirmation_checkbox_2_checked
    )
    if missing:
        record_booking_attempt("rejected")
        raise bad_request(missing[0])

    if event.approval_mode == "manual":
        status = BookingStatus.PENDING
    elif await _take_seat(db, event.id):
        status = BookingStatus.CONFIRMED
    elif event.allow_waitlist:
        status = BookingStatus.WAITLIST
    else:
        record_booking_attempt("rejected")
        raise bad_request("This event is fully booked and no waitlist is available")

    booking = Booking(
        event_id=event.id,
        user_id=ctx.user_id,
        status=status,
        booked_at=ctx.now,
        confirmation_checkbox_1_checked=data.confirmation_checkbox_1_checked,
        confirmation_checkbox_2_checked=data.confirmation_checkbox_2_checked,
        notes=data.notes,
    )
    db.add(booking)
    try:
        await db.flush()
    except IntegrityError:
        # a concurrent request from the same user won the unique index
        record_booking_attempt("conflict")
        raise conflict("You already have a booking for this event")

    record_booking_attempt(status)
    logger.info("booking_created", booking_id=booking.id, event_id=event.id, status=status)
    return booking, CREATE_MESSAGES[status]


def update_message(status: Optional[str], checked_in: Optional[bool]) -> str:
    if status == BookingStatus.CANCELLED:
        return "Booking cancelled successfully"
    if status == BookingStatus.ATTENDED:
        return "Marked as attended"
    if status == BookingStatus.NO_SHOW:
        return "Marked as no-show"
    if checked_in is True:
        return "Check-in recorded"
    if checked_in is False:
        return "Check-in removed"
    return "Booking updated successfully"


async def update_booking(
    db: AsyncSession,
    ctx: RequestContext,
    booking_id: int,
    data: BookingUpdate,
) -> tuple[Booking, str]:
    """
    Owners can only cancel (subject to the event's cancellation deadline).
    Staff can move the booking through the lifecycle, toggle check-in and
    edit notes.
    """
    booking = await get_booking(db, booking_id, ctx)
    if booking.deleted_at is not None:
        raise not_found("Booking not found")

    if not ctx.is_admin:
        if data.status is not None and data.status != BookingStatus.CANCELLED:
            raise forbidden("You can only cancel your own bookings")
        if data.status == BookingStatus.CANCELLED:
            event = await get_event(db, booking.event_id)
            if availability.cancellation_cutoff_passed(event, ctx.now):
                raise bad_request(
                    f"Cannot cancel within {event.cancellation_deadline_hours} hours of the event. "
                    "Please contact the event organizer for assistance."
                )
            await apply_transition(db, booking, BookingStatus.CANCELLED, Actor.USER, ctx)
            if data.cancellation_reason:
                booking.cancellation_reason = data.cancellation_reason.strip()
        await db.flush()
        return booking, update_message(data.status, None)

    if data.status is not None and data.status != booking.status:
        await apply_transition(db, booking, data.status, Actor.ADMIN, ctx)
    if data.cancellation_reason is not None:
        booking.cancellation_reason = data.cancellation_reason
    if data.notes is not None:
        booking.notes = data.notes
    if data.checked_in is not None:
        booking.checked_in = data.checked_in
        booking.checked_in_at = ctx.now if data.checked_in else None

    await db.flush()
    return booking, update_message(data.status, data.checked_in)


async def delete_booking(db: AsyncSession, ctx: RequestContext, booking_id: int, hard: bool = False) -> str:
    """
    Remove a cancelled booking. Owners hide it from their list (soft
    delete); staff may delete the row outright with hard=True.
    """
    booking = await get_booking(db, booking_id, ctx)

    if booking.status != BookingStatus.CANCELLED:
        raise bad_request("Only cancelled bookings can be deleted")

    if hard and ctx.is_admin:
        await db.delete(booking)
        await db.flush()
        logger.info("booking_deleted", booking_id=booking_id, hard=True)
        return "Booking permanently deleted"

    if booking.deleted_at is None:
        booking.deleted_at = ctx.now
        booking.deleted_by = ctx.user_id
        await db.flush()
    logger.info("booking_deleted", booking_id=booking_id, hard=False)
    return "Booking deleted successfully"


# ---------------------------------------------------------------------------
# Admin views
# ---------------------------------------------------------------------------

async def list_event_bookings(
    db: AsyncSession,
    event_id: int,
    status_filter: Optional[str] = None,
) -> tuple[Event, list[Booking], dict]:
    event = await get_event(db, event_id)

    query = (
        select(Booking)
        .where(Booking.event_id == event_id)
        .options(selectinload(Booking.user))
        .order_by(Booking.booked_at.desc(), Booking.id.desc())
    )
    if status_filter:
        query = query.where(Booking.status == status_filter)
    bookings = list((await db.execute(query)).scalars().all())

    counts_result = await db.execute(
        select(Booking.status, func.count())
        .where(Booking.event_id == event_id)
        .group_by(Booking.status)
    )
    counts = {status: 0 for status in BookingStatus.ALL}
    counts.update({status: count for status, count in counts_result.all()})

    checked_in = (
        await db.execute(
            select(func.count())
            .select_from(Booking)
            .where(Booking.event_id == event_id, Booking.checked_in.is_(True))
        )
    ).scalar()

    summary = {
        "total": sum(counts.values()),
        "pending": counts[BookingStatus.PENDING],
        "confirmed": counts[BookingStatus.CONFIRMED],
        "waitlist": counts[BookingStatus.WAITLIST],
        "cancelled": counts[BookingStatus.CANCELLED],
        "attended": counts[BookingStatus.ATTENDED],
        "no_show": counts[BookingStatus.NO_SHOW],
        "checked_in": checked_in,
        "capacity": event.booking_capacity,
        "available_slots": availability.available_slots(event, event.confirmed_count),
    }
    return event, bookings, summary
