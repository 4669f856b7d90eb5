"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from medbook.api.routes import auth, events, bookings, qr_codes, attendance

api_router = APIRouter(prefix="/api")
api_router.include_router(auth.router)
api_router.include_router(events.router)
api_router.include_router(bookings.router)
api_router.include_router(qr_codes.router)
api_router.include_router(attendance.router)
