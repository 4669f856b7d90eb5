"""
Booking endpoints: the caller's bookings, the booking status check used by
the booking button, and the admin console views.

Every mutation that can move a seat invalidates the cached event lists.
"""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.db.session import get_db
from medbook.schemas.booking import (
    BookingCreate,
    BookingEnvelope,
    BookingListResponse,
    BookingStatusLiteral,
    BookingStatusResponse,
    BookingUpdate,
    BookingWithEvent,
    EventBookingsResponse,
    MessageResponse,
    PromotionResponse,
)
from medbook.services import booking_service
from medbook.services.cache_service import invalidate_event_cache
from medbook.services.event_service import get_event
from medbook.services.export_service import export_bookings_csv, export_filename
from medbook.core.security import RequestContext, get_request_context, require_admin
from medbook.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.get("", response_model=BookingListResponse)
async def list_my_bookings(
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
):
    """All of the caller's bookings, newest first."""
    bookings = await booking_service.get_user_bookings(db, ctx)
    return BookingListResponse.model_validate(
        {"bookings": bookings, "count": len(bookings)}, from_attributes=True
    )


@router.post("", response_model=BookingEnvelope, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Book the caller onto an event.

    The server decides the resulting status: confirmed while seats remain,
    waitlist once full (if the event keeps one), pending for events that
    need approval. Seat counting uses optimistic locking and retries up to
    3 times before returning 409.
    """
    booking, message = await booking_service.create_booking(db, ctx, booking_data)
    await invalidate_event_cache()
    return BookingEnvelope.model_validate({"booking": booking, "message": message}, from_attributes=True)


@router.get("/check/{event_id}", response_model=BookingStatusResponse)
async def check_booking_status(
    event_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
):
    """Booking settings, the caller's booking and live availability. Read-only."""
    data = await booking_service.check_booking_status(db, ctx, event_id)
    return BookingStatusResponse.model_validate(data, from_attributes=True)


@router.get("/event/{event_id}", response_model=EventBookingsResponse)
async def list_event_bookings(
    event_id: int,
    status_filter: BookingStatusLiteral | None = Query(None, alias="status"),
    ctx: RequestContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    event, bookings, summary = await booking_service.list_event_bookings(db, event_id, status_filter)
    return EventBookingsResponse.model_validate(
        {"event": event, "bookings": bookings, "summary": summary}, from_attributes=True
    )


@router.post("/event/{event_id}/promote", response_model=PromotionResponse)
async def promote_waitlist(
    event_id: int,
    ctx: RequestContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Fill any free seats from the waitlist, earliest booking first."""
    await get_event(db, event_id)
    promoted = await booking_service.promote_waitlist(db, event_id)
    if promoted:
        await invalidate_event_cache()
    return PromotionResponse(
        promoted=promoted,
        message=f"Promoted {len(promoted)} booking(s) from the waitlist",
    )


@router.get("/event/{event_id}/export")
async def export_event_bookings(
    event_id: int,
    ctx: RequestContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    event, content = await export_bookings_csv(db, event_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename("bookings", event)}"'},
    )


@router.get("/{booking_id}", response_model=BookingWithEvent)
async def get_booking(
    booking_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.get_booking(db, booking_id, ctx)


@router.put("/{booking_id}", response_model=BookingEnvelope)
async def update_booking(
    booking_id: int,
    update_data: BookingUpdate,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Owners may cancel their booking. Staff may change its status, toggle
    check-in and edit notes. Freeing a seat promotes the waitlist.
    """
    booking, message = await booking_service.update_booking(db, ctx, booking_id, update_data)
    await invalidate_event_cache()
    return BookingEnvelope.model_validate({"booking": booking, "message": message}, from_attributes=True)


@router.delete("/{booking_id}", response_model=MessageResponse)
async def delete_booking(
    booking_id: int,
    hard: bool = Query(False),
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
):
    """Delete a cancelled booking. `hard=true` removes the row (staff only)."""
    message = await booking_service.delete_booking(db, ctx, booking_id, hard=hard)
    return MessageResponse(message=message)
