"""
Attendance export for QR managers.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.db.session import get_db
from medbook.services.export_service import export_attendance_csv, export_filename
from medbook.core.security import RequestContext, require_qr_manager

router = APIRouter(prefix="/attendance", tags=["Attendance"])


@router.get("/{event_id}/export")
async def export_attendance(
    event_id: int,
    ctx: RequestContext = Depends(require_qr_manager),
    db: AsyncSession = Depends(get_db),
):
    """Every scan of the event's codes as CSV, with summary statistics."""
    event, content = await export_attendance_csv(db, event_id, ctx.now)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename("attendance", event)}"'},
    )
