"""
Async HTTP client for the booking API.

Preconditions the UI is responsible for (confirmation checkboxes, the
cancellation policy, a cancellation reason) are checked here before any
request goes out. Everything else is the server's decision: the client
never guesses a booking status and never retries.
"""

from typing import Any, Optional

import httpx
from pydantic import ValidationError

from medbook.client.errors import (
    ApiRequestError,
    AuthenticationRequired,
    BookingValidationError,
    NetworkError,
)
from medbook.core.logging import get_logger
from medbook.schemas.booking import BookingEnvelope, BookingListResponse, BookingStatusResponse
from medbook.schemas.event import BookingEventSummary
from medbook.schemas.qr_code import ScanFailure, ScanOutcome, ScanSuccess

logger = get_logger(__name__)

SCAN_NETWORK_FAILURE = "Failed to process QR code. Please try again."
UNEXPECTED_RESPONSE = "Unexpected response from server"


def check_submission(
    event: BookingEventSummary,
    checkbox_1: bool,
    checkbox_2: bool,
    policy_accepted: bool,
) -> None:
    """Raise BookingValidationError for the first unmet booking precondition."""
    if not policy_accepted:
        raise BookingValidationError("Please read and accept the cancellation policy to continue")
    if event.confirmation_checkbox_1_required and not checkbox_1:
        raise BookingValidationError("Please confirm the first checkbox to continue")
    if event.confirmation_checkbox_2_text and event.confirmation_checkbox_2_required and not checkbox_2:
        raise BookingValidationError("Please confirm the second checkbox to continue")


class BookingClient:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        timeout: Optional[float] = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "BookingClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.warning("api_request_failed", method=method, path=path, error=str(e))
            raise NetworkError("Network error. Please check your connection and try again.") from e

        if response.status_code == 401:
            raise AuthenticationRequired()

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = body.get("error") if isinstance(body, dict) else None
            details = body.get("details") if isinstance(body, dict) else None
            logger.info("api_request_rejected", method=method, path=path, status_code=response.status_code)
            raise ApiRequestError(
                response.status_code,
                message or f"Request failed with status {response.status_code}",
                details,
            )

        try:
            return response.json()
        except ValueError as e:
            logger.warning("api_response_unreadable", method=method, path=path, status_code=response.status_code)
            raise ApiRequestError(response.status_code, UNEXPECTED_RESPONSE) from e

    async def fetch_status(self, event_id: int) -> BookingStatusResponse:
        data = await self._request("GET", f"/api/bookings/check/{event_id}")
        return BookingStatusResponse.model_validate(data)

    async def submit_booking(
        self,
        event: BookingEventSummary,
        *,
        checkbox_1: bool = False,
        checkbox_2: bool = False,
        policy_accepted: bool = False,
        notes: Optional[str] = None,
    ) -> BookingEnvelope:
        check_submission(event, checkbox_1, checkbox_2, policy_accepted)
        payload = {
            "eventId": event.id,
            "confirmationCheckbox1Checked": checkbox_1,
            "confirmationCheckbox2Checked": checkbox_2,
        }
        if notes:
            payload["notes"] = notes
        data = await self._request("POST", "/api/bookings", json=payload)
        return BookingEnvelope.model_validate(data)

    async def cancel_booking(self, booking_id: int, reason: str) -> BookingEnvelope:
        if not reason or not reason.strip():
            raise BookingValidationError("Please provide a reason for cancellation")
        data = await self._request(
            "PUT",
            f"/api/bookings/{booking_id}",
            json={"status": "cancelled", "cancellation_reason": reason.strip()},
        )
        return BookingEnvelope.model_validate(data)

    async def list_bookings(self) -> BookingListResponse:
        return BookingListResponse.model_validate(await self._request("GET", "/api/bookings"))

    async def delete_booking(self, booking_id: int) -> str:
        data = await self._request("DELETE", f"/api/bookings/{booking_id}")
        return data["message"]

    async def submit_scan(self, qr_code_data: str, event_id: Optional[int] = None) -> ScanOutcome:
        """
        Submit a scanned payload. Server rejections, network failures and
        unreadable answers come back as ScanFailure; only
        AuthenticationRequired is raised.
        """
        try:
            data = await self._request(
                "POST",
                "/api/qr-codes/scan",
                json={"qrCodeData": qr_code_data, "eventId": event_id},
            )
        except ApiRequestError as e:
            return ScanFailure(message=e.message, status_code=e.status_code, details=e.details)
        except NetworkError:
            return ScanFailure(message=SCAN_NETWORK_FAILURE)
        try:
            return ScanSuccess.model_validate(data)
        except ValidationError as e:
            logger.warning("scan_response_invalid", errors=e.error_count())
            return ScanFailure(message=UNEXPECTED_RESPONSE)
