"""
Pydantic schemas for QR code management and attendance scans.

A scan produces one of two shapes, told apart by `success`:
ScanSuccess from the server on 200, ScanFailure built from an error body
(or a transport failure) on the client side.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from medbook.db.types import as_utc


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class QRCodeGenerateRequest(_CamelModel):
    event_id: int = Field(alias="eventId")
    scan_window_start: Optional[datetime] = Field(default=None, alias="scanWindowStart")
    scan_window_end: Optional[datetime] = Field(default=None, alias="scanWindowEnd")

    @field_validator("scan_window_start", "scan_window_end")
    @classmethod
    def naive_times_are_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class QRCodeResponse(_CamelModel):
    id: int
    event_id: int = Field(alias="eventId")
    qr_code_data: str = Field(alias="qrCodeData")
    scan_window_start: datetime = Field(alias="scanWindowStart")
    scan_window_end: datetime = Field(alias="scanWindowEnd")
    active: bool
    scan_count: int = Field(default=0, alias="scanCount")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


class QRCodeEnvelope(_CamelModel):
    success: bool = True
    qr_code: QRCodeResponse = Field(alias="qrCode")
    message: Optional[str] = None


class ScanRequest(_CamelModel):
    qr_code_data: Optional[str] = Field(default=None, alias="qrCodeData", max_length=2048)
    event_id: Optional[int] = Field(default=None, alias="eventId")


class ScanDetails(_CamelModel):
    event_title: Optional[str] = Field(default=None, alias="eventTitle")
    event_date: Optional[datetime] = Field(default=None, alias="eventDate")
    checked_in_at: Optional[datetime] = Field(default=None, alias="checkedInAt")
    has_booking: bool = Field(default=False, alias="hasBooking")
    feedback_email_sent: bool = Field(default=False, alias="feedbackEmailSent")
    duplicate: bool = False


class ScanSuccess(_CamelModel):
    success: Literal[True] = True
    message: str
    details: ScanDetails


class ScanFailure(_CamelModel):
    success: Literal[False] = False
    message: str
    status_code: Optional[int] = None
    details: Optional[dict] = None


ScanOutcome = Annotated[Union[ScanSuccess, ScanFailure], Field(discriminator="success")]
