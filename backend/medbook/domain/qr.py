"""
QR attendance payloads and scan windows.

A code encodes a URL of the scan page with the event id in the `event`
query parameter, e.g. https://host/scan-attendance?event=42.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlsplit


class ScanWindowError(ValueError):
    pass


@dataclass(frozen=True)
class ScanWindow:
    start: datetime
    end: datetime

    def is_before(self, moment: datetime) -> bool:
        return moment < self.start

    def is_after(self, moment: datetime) -> bool:
        return moment > self.end


def build_payload(base_url: str, path: str, event_id: int) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}?{urlencode({'event': event_id})}"


def parse_event_id(qr_code_data: str) -> Optional[int]:
    """Event id carried by a scanned payload, or None if it is not ours."""
    if not qr_code_data:
        return None
    parts = urlsplit(qr_code_data.strip())
    if not parts.scheme or not parts.netloc:
        return None
    values = parse_qs(parts.query).get("event")
    if not values:
        return None
    try:
        return int(values[0])
    except ValueError:
        return None


def default_window(starts_at: datetime, ends_at: datetime, lead_minutes: int, trail_minutes: int) -> ScanWindow:
    return ScanWindow(
        start=starts_at - timedelta(minutes=lead_minutes),
        end=ends_at + timedelta(minutes=trail_minutes),
    )


def resolve_window(
    starts_at: datetime,
    ends_at: datetime,
    requested_start: Optional[datetime],
    requested_end: Optional[datetime],
    lead_minutes: int,
    trail_minutes: int,
) -> ScanWindow:
    """Explicit bounds win over the event-derived default, one side at a time."""
    default = default_window(starts_at, ends_at, lead_minutes, trail_minutes)
    window = ScanWindow(
        start=requested_start or default.start,
        end=requested_end or default.end,
    )
    if window.start >= window.end:
        raise ScanWindowError("Scan window start must be before scan window end")
    return window
