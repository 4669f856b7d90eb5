"""
Event service handling creation and reads.
"""

from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.models.event import Event
from medbook.schemas.event import EventCreate
from medbook.core.errors import bad_request, not_found
from medbook.core.logging import get_logger
from medbook.core.security import RequestContext

logger = get_logger(__name__)


async def create_event(db: AsyncSession, ctx: RequestContext, event_data: EventCreate) -> Event:
    if event_data.ends_at <= ctx.now:
        raise bad_request("Event must end in the future")

    event = Event(
        **event_data.model_dump(),
        confirmed_count=0,
        version=1,
        organizer_id=ctx.user_id,
    )
    db.add(event)
    await db.flush()

    logger.info(
        "event_created",
        event_id=event.id,
        title=event.title,
        capacity=event.booking_capacity,
        waitlist=event.allow_waitlist,
    )
    return event


async def get_event(db: AsyncSession, event_id: int, *, fresh: bool = False) -> Event:
    """Load an event or raise 404. `fresh` re-reads a row already in the session."""
    query = select(Event).where(Event.id == event_id)
    if fresh:
        query = query.execution_options(populate_existing=True)
    result = await db.execute(query)
    event = result.scalar_one_or_none()

    if not event:
        raise not_found("Event not found")
    return event


async def list_events(
    db: AsyncSession,
    now: datetime,
    page: int = 1,
    page_size: int = 20,
    upcoming_only: bool = True,
) -> tuple[list[Event], int]:
    query = select(Event)

    if upcoming_only:
        query = query.where(Event.ends_at >= now)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    events_query = (
        query
        .order_by(Event.starts_at.asc(), Event.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(events_query)
    return list(result.scalars().all()), total
