"""
Attendance QR code endpoints.

Generation and inspection are limited to QR managers; any signed-in user
may scan.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.db.session import get_db
from medbook.models.qr_code import EventQRCode
from medbook.schemas.booking import MessageResponse
from medbook.schemas.qr_code import QRCodeEnvelope, QRCodeGenerateRequest, QRCodeResponse, ScanRequest, ScanSuccess
from medbook.services import qr_code_service
from medbook.services.cache_service import invalidate_event_cache
from medbook.core.security import RequestContext, get_request_context, require_qr_manager

router = APIRouter(prefix="/qr-codes", tags=["QR Codes"])


def _envelope(code: EventQRCode, scan_count: int = 0, message: str | None = None) -> QRCodeEnvelope:
    return QRCodeEnvelope(
        qr_code=QRCodeResponse(
            id=code.id,
            event_id=code.event_id,
            qr_code_data=code.qr_code_data,
            scan_window_start=code.scan_window_start,
            scan_window_end=code.scan_window_end,
            active=code.active,
            scan_count=scan_count,
            created_at=code.created_at,
            updated_at=code.updated_at,
        ),
        message=message,
    )


@router.post("/generate", response_model=QRCodeEnvelope, status_code=status.HTTP_201_CREATED)
async def generate_qr_code(
    request: QRCodeGenerateRequest,
    ctx: RequestContext = Depends(require_qr_manager),
    db: AsyncSession = Depends(get_db),
):
    code = await qr_code_service.generate_qr_code(db, request)
    return _envelope(code, message="QR code generated successfully")


@router.post("/regenerate", response_model=QRCodeEnvelope, status_code=status.HTTP_201_CREATED)
async def regenerate_qr_code(
    request: QRCodeGenerateRequest,
    ctx: RequestContext = Depends(require_qr_manager),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate the event's current code and issue a new one."""
    code = await qr_code_service.regenerate_qr_code(db, request)
    return _envelope(code, message="QR code regenerated successfully")


@router.post("/scan", response_model=ScanSuccess)
async def scan_qr_code(
    request: ScanRequest,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
):
    """Mark the caller's attendance. Failures come back as {error, details}."""
    result = await qr_code_service.scan(db, ctx, request)
    if not result.details.duplicate:
        await invalidate_event_cache()
    return result


@router.get("/{event_id}", response_model=QRCodeEnvelope)
async def get_qr_code(
    event_id: int,
    ctx: RequestContext = Depends(require_qr_manager),
    db: AsyncSession = Depends(get_db),
):
    code, scan_count = await qr_code_service.get_qr_code(db, event_id)
    return _envelope(code, scan_count)


@router.delete("/{event_id}", response_model=MessageResponse)
async def deactivate_qr_code(
    event_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
):
    await qr_code_service.deactivate_qr_code(db, ctx, event_id)
    return MessageResponse(message="QR code deactivated successfully")
