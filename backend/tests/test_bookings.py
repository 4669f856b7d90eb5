"""
Tests for booking endpoints: admission, cancellation, waitlist promotion
and the admin console.
"""

from datetime import datetime, timezone, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import InvalidRequestError
from sqlalchemy.orm import selectinload

from conftest import auth_headers_for, book, booking_status, reload
from medbook.models import Booking


@pytest.mark.asyncio
async def test_book_event(client: AsyncClient, auth_headers, test_event, db_session):
    """Booking an open event confirms it and takes a seat."""
    response = await book(client, auth_headers, test_event.id)
    assert response.status_code == 201
    data = response.json()
    assert data["booking"]["event_id"] == test_event.id
    assert data["booking"]["status"] == "confirmed"
    assert data["message"] == "Successfully booked for this event!"

    event = await reload(db_session, test_event)
    assert event.confirmed_count == 1
    assert event.version == 2


@pytest.mark.asyncio
async def test_book_unauthenticated(client: AsyncClient, test_event):
    response = await client.post("/api/bookings", json={"eventId": test_event.id})
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


@pytest.mark.asyncio
async def test_book_missing_event(client: AsyncClient, auth_headers):
    response = await book(client, auth_headers, 999999)
    assert response.status_code == 404
    assert response.json() == {"error": "Event not found"}


@pytest.mark.asyncio
async def test_book_disabled_event(client: AsyncClient, auth_headers, make_event):
    event = await make_event(booking_enabled=False)
    response = await book(client, auth_headers, event.id)
    assert response.status_code == 400
    assert response.json()["error"] == "Booking is not enabled for this event"


@pytest.mark.asyncio
async def test_book_after_deadline(client: AsyncClient, auth_headers, make_event):
    """A 48h deadline on an event starting tomorrow has already passed."""
    event = await make_event(
        starts_at=datetime.now(timezone.utc) + timedelta(hours=24),
        booking_deadline_hours=48,
    )
    response = await book(client, auth_headers, event.id)
    assert response.status_code == 400
    assert "deadline has passed" in response.json()["error"]


@pytest.mark.asyncio
async def test_book_requires_confirmation_checkbox(client: AsyncClient, auth_headers, make_event):
    event = await make_event(
        confirmation_checkbox_1_text="I have completed the pre-reading",
        confirmation_checkbox_1_required=True,
    )
    response = await book(client, auth_headers, event.id)
    assert response.status_code == 400
    assert response.json()["error"] == "First confirmation checkbox is required"

    response = await book(client, auth_headers, event.id, confirmationCheckbox1Checked=True)
    assert response.status_code == 201
    assert response.json()["booking"]["confirmation_checkbox_1_checked"] is True


@pytest.mark.asyncio
async def test_second_checkbox_without_text_is_not_enforced(client: AsyncClient, auth_headers, make_event):
    event = await make_event(confirmation_checkbox_2_required=True, confirmation_checkbox_2_text=None)
    response = await book(client, auth_headers, event.id)
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_duplicate_booking(client: AsyncClient, auth_headers, test_event):
    """Same user booking same event twice returns 409."""
    first = await book(client, auth_headers, test_event.id)
    assert first.status_code == 201

    second = await book(client, auth_headers, test_event.id)
    assert second.status_code == 409
    body = second.json()
    assert body["error"] == "You already have a booking for this event"
    assert body["details"]["existingBooking"]["id"] == first.json()["booking"]["id"]


@pytest.mark.asyncio
async def test_full_event_goes_to_waitlist(client: AsyncClient, make_user, single_seat_event, db_session):
    first_user, second_user = await make_user(), await make_user()

    first = await book(client, auth_headers_for(first_user), single_seat_event.id)
    assert first.json()["booking"]["status"] == "confirmed"

    second = await book(client, auth_headers_for(second_user), single_seat_event.id)
    assert second.status_code == 201
    assert second.json()["booking"]["status"] == "waitlist"
    assert second.json()["message"].startswith("You have been added to the waitlist")

    event = await reload(db_session, single_seat_event)
    assert event.confirmed_count == 1


@pytest.mark.asyncio
async def test_full_event_without_waitlist(client: AsyncClient, make_user, make_event):
    event = await make_event(booking_capacity=1, allow_waitlist=False)
    await book(client, auth_headers_for(await make_user()), event.id)

    response = await book(client, auth_headers_for(await make_user()), event.id)
    assert response.status_code == 400
    assert response.json()["error"] == "This event is fully booked and no waitlist is available"


@pytest.mark.asyncio
async def test_manual_approval_creates_pending_without_seat(client: AsyncClient, auth_headers, make_event, db_session):
    event = await make_event(approval_mode="manual")
    response = await book(client, auth_headers, event.id)
    assert response.json()["booking"]["status"] == "pending"
    assert response.json()["message"] == "Booking submitted! Waiting for admin approval."
    assert (await reload(db_session, event)).confirmed_count == 0


@pytest.mark.asyncio
async def test_confirmed_count_never_exceeds_capacity(client: AsyncClient, make_user, make_event, db_session):
    event = await make_event(booking_capacity=3)
    statuses = []
    for _ in range(6):
        response = await book(client, auth_headers_for(await make_user()), event.id)
        statuses.append(response.json()["booking"]["status"])

    assert statuses == ["confirmed"] * 3 + ["waitlist"] * 3
    assert (await reload(db_session, event)).confirmed_count == 3


@pytest.mark.asyncio
async def test_cancel_booking(client: AsyncClient, auth_headers, test_event, db_session):
    """Cancelling releases the seat and records the reason."""
    booking_id = (await book(client, auth_headers, test_event.id)).json()["booking"]["id"]

    response = await client.put(
        f"/api/bookings/{booking_id}",
        json={"status": "cancelled", "cancellation_reason": "Clinical shift clash"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Booking cancelled successfully"
    assert data["booking"]["status"] == "cancelled"
    assert data["booking"]["cancellation_reason"] == "Clinical shift clash"
    assert data["booking"]["cancelled_at"] is not None

    assert (await reload(db_session, test_event)).confirmed_count == 0


@pytest.mark.asyncio
async def test_cancel_already_cancelled(client: AsyncClient, auth_headers, test_event):
    """Double-cancelling returns 400."""
    booking_id = (await book(client, auth_headers, test_event.id)).json()["booking"]["id"]
    body = {"status": "cancelled", "cancellation_reason": "No longer available"}

    await client.put(f"/api/bookings/{booking_id}", json=body, headers=auth_headers)
    response = await client.put(f"/api/bookings/{booking_id}", json=body, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Booking is already cancelled"


@pytest.mark.asyncio
async def test_user_cannot_confirm_own_booking(client: AsyncClient, auth_headers, make_event):
    event = await make_event(approval_mode="manual")
    booking_id = (await book(client, auth_headers, event.id)).json()["booking"]["id"]

    response = await client.put(f"/api/bookings/{booking_id}", json={"status": "confirmed"}, headers=auth_headers)
    assert response.status_code == 403
    assert response.json()["error"] == "You can only cancel your own bookings"


@pytest.mark.asyncio
async def test_cannot_touch_someone_elses_booking(client: AsyncClient, auth_headers, make_user, test_event):
    other = await make_user()
    booking_id = (await book(client, auth_headers_for(other), test_event.id)).json()["booking"]["id"]

    response = await client.put(
        f"/api/bookings/{booking_id}",
        json={"status": "cancelled", "cancellation_reason": "not mine"},
        headers=auth_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_cancellation_deadline(client: AsyncClient, auth_headers, make_event):
    event = await make_event(
        starts_at=datetime.now(timezone.utc) + timedelta(hours=12),
        cancellation_deadline_hours=24,
    )
    booking_id = (await book(client, auth_headers, event.id)).json()["booking"]["id"]

    response = await client.put(
        f"/api/bookings/{booking_id}",
        json={"status": "cancelled", "cancellation_reason": "Too late"},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"].startswith("Cannot cancel within 24 hours of the event")


@pytest.mark.asyncio
async def test_rebook_after_cancel(client: AsyncClient, auth_headers, test_event):
    booking_id = (await book(client, auth_headers, test_event.id)).json()["booking"]["id"]
    await client.put(
        f"/api/bookings/{booking_id}",
        json={"status": "cancelled", "cancellation_reason": "Changed plans"},
        headers=auth_headers,
    )

    response = await book(client, auth_headers, test_event.id)
    assert response.status_code == 201
    assert response.json()["booking"]["id"] != booking_id


# ---------------------------------------------------------------------------
# Waitlist promotion
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_cancel_promotes_earliest_waitlisted(client: AsyncClient, make_user, single_seat_event, db_session):
    holder, early, late = await make_user(), await make_user(), await make_user()
    holder_booking = (await book(client, auth_headers_for(holder), single_seat_event.id)).json()["booking"]
    early_booking = (await book(client, auth_headers_for(early), single_seat_event.id)).json()["booking"]
    late_booking = (await book(client, auth_headers_for(late), single_seat_event.id)).json()["booking"]
    assert early_booking["status"] == late_booking["status"] == "waitlist"

    response = await client.put(
        f"/api/bookings/{holder_booking['id']}",
        json={"status": "cancelled", "cancellation_reason": "On call"},
        headers=auth_headers_for(holder),
    )
    assert response.status_code == 200

    assert await booking_status(db_session, early_booking["id"]) == "confirmed"
    assert await booking_status(db_session, late_booking["id"]) == "waitlist"
    assert (await reload(db_session, single_seat_event)).confirmed_count == 1


@pytest.mark.asyncio
async def test_admin_cancel_promotes_waitlist(
    client: AsyncClient, make_user, admin_headers, single_seat_event, db_session
):
    holder, waiting = await make_user(), await make_user()
    holder_id = (await book(client, auth_headers_for(holder), single_seat_event.id)).json()["booking"]["id"]
    waiting_id = (await book(client, auth_headers_for(waiting), single_seat_event.id)).json()["booking"]["id"]

    response = await client.put(
        f"/api/bookings/{holder_id}", json={"status": "cancelled"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert await booking_status(db_session, waiting_id) == "confirmed"


@pytest.mark.asyncio
async def test_cancelling_waitlisted_booking_promotes_nobody(
    client: AsyncClient, make_user, single_seat_event, db_session
):
    holder, first_waiting, second_waiting = await make_user(), await make_user(), await make_user()
    await book(client, auth_headers_for(holder), single_seat_event.id)
    first_id = (await book(client, auth_headers_for(first_waiting), single_seat_event.id)).json()["booking"]["id"]
    second_id = (await book(client, auth_headers_for(second_waiting), single_seat_event.id)).json()["booking"]["id"]

    await client.put(
        f"/api/bookings/{first_id}",
        json={"status": "cancelled", "cancellation_reason": "Changed plans"},
        headers=auth_headers_for(first_waiting),
    )

    assert await booking_status(db_session, second_id) == "waitlist"
    assert (await reload(db_session, single_seat_event)).confirmed_count == 1


@pytest.mark.asyncio
async def test_manual_promote_fills_raised_capacity(
    client: AsyncClient, make_user, admin_headers, single_seat_event, db_session
):
    await book(client, auth_headers_for(await make_user()), single_seat_event.id)
    waiting = [
        (await book(client, auth_headers_for(await make_user()), single_seat_event.id)).json()["booking"]["id"]
        for _ in range(3)
    ]

    event = await reload(db_session, single_seat_event)
    event.booking_capacity = 3
    await db_session.commit()

    response = await client.post(f"/api/bookings/event/{single_seat_event.id}/promote", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["promoted"] == waiting[:2]
    assert await booking_status(db_session, waiting[2]) == "waitlist"
    assert (await reload(db_session, single_seat_event)).confirmed_count == 3


@pytest.mark.asyncio
async def test_promote_requires_admin(client: AsyncClient, auth_headers, test_event):
    response = await client.post(f"/api/bookings/event/{test_event.id}/promote", headers=auth_headers)
    assert response.status_code == 403


# ---------------------------------------------------------------------------
# Admin transitions
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_admin_approves_pending_booking(
    client: AsyncClient, auth_headers, admin_headers, make_event, db_session
):
    event = await make_event(approval_mode="manual")
    booking_id = (await book(client, auth_headers, event.id)).json()["booking"]["id"]

    response = await client.put(f"/api/bookings/{booking_id}", json={"status": "confirmed"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["booking"]["status"] == "confirmed"
    assert (await reload(db_session, event)).confirmed_count == 1


@pytest.mark.asyncio
async def test_admin_cannot_confirm_past_capacity(
    client: AsyncClient, make_user, admin_headers, make_event
):
    event = await make_event(approval_mode="manual", booking_capacity=1)
    first = (await book(client, auth_headers_for(await make_user()), event.id)).json()["booking"]["id"]
    second = (await book(client, auth_headers_for(await make_user()), event.id)).json()["booking"]["id"]

    assert (await client.put(f"/api/bookings/{first}", json={"status": "confirmed"}, headers=admin_headers)).status_code == 200
    response = await client.put(f"/api/bookings/{second}", json={"status": "confirmed"}, headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "No seats available for this event"


@pytest.mark.asyncio
async def test_admin_marks_attendance_and_corrects_it(
    client: AsyncClient, auth_headers, admin_headers, test_event, db_session
):
    booking_id = (await book(client, auth_headers, test_event.id)).json()["booking"]["id"]

    attended = await client.put(f"/api/bookings/{booking_id}", json={"status": "attended"}, headers=admin_headers)
    assert attended.json()["message"] == "Marked as attended"
    assert attended.json()["booking"]["checked_in"] is True

    no_show = await client.put(f"/api/bookings/{booking_id}", json={"status": "no_show"}, headers=admin_headers)
    assert no_show.json()["booking"]["status"] == "no_show"

    # attendees keep their seat through corrections
    assert (await reload(db_session, test_event)).confirmed_count == 1


@pytest.mark.asyncio
async def test_cancelled_is_terminal_for_admins(client: AsyncClient, auth_headers, admin_headers, test_event):
    booking_id = (await book(client, auth_headers, test_event.id)).json()["booking"]["id"]
    await client.put(f"/api/bookings/{booking_id}", json={"status": "cancelled"}, headers=admin_headers)

    response = await client.put(f"/api/bookings/{booking_id}", json={"status": "confirmed"}, headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_invalid_status_value_is_422(client: AsyncClient, admin_headers, auth_headers, test_event):
    booking_id = (await book(client, auth_headers, test_event.id)).json()["booking"]["id"]
    response = await client.put(f"/api/bookings/{booking_id}", json={"status": "bogus"}, headers=admin_headers)
    assert response.status_code == 422
    assert response.json()["error"] == "Invalid request"


@pytest.mark.asyncio
async def test_admin_check_in_toggle_and_notes(client: AsyncClient, auth_headers, admin_headers, test_event):
    booking_id = (await book(client, auth_headers, test_event.id)).json()["booking"]["id"]

    response = await client.put(
        f"/api/bookings/{booking_id}",
        json={"checked_in": True, "notes": "Arrived late"},
        headers=admin_headers,
    )
    data = response.json()
    assert data["message"] == "Check-in recorded"
    assert data["booking"]["checked_in"] is True
    assert data["booking"]["checked_in_at"] is not None
    assert data["booking"]["notes"] == "Arrived late"
    assert data["booking"]["status"] == "confirmed"


# ---------------------------------------------------------------------------
# Reads and deletion
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_my_bookings(client: AsyncClient, auth_headers, make_event):
    first = await make_event(title="Morning teaching")
    second = await make_event(title="Evening teaching")
    await book(client, auth_headers, first.id)
    await book(client, auth_headers, second.id)

    response = await client.get("/api/bookings", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["count"] == 2
    assert {b["event"]["title"] for b in data["bookings"]} == {"Morning teaching", "Evening teaching"}


@pytest.mark.asyncio
async def test_booking_relationships_load_only_on_request(client: AsyncClient, auth_headers, test_event, db_session):
    booking_id = (await book(client, auth_headers, test_event.id)).json()["booking"]["id"]

    plain = (await db_session.execute(select(Booking).where(Booking.id == booking_id))).scalar_one()
    with pytest.raises(InvalidRequestError):
        plain.event

    db_session.expunge_all()
    loaded = (
        await db_session.execute(
            select(Booking).where(Booking.id == booking_id).options(selectinload(Booking.event))
        )
    ).scalar_one()
    assert loaded.event.id == test_event.id


@pytest.mark.asyncio
async def test_get_booking(client: AsyncClient, auth_headers, make_user, test_event):
    booking_id = (await book(client, auth_headers, test_event.id)).json()["booking"]["id"]

    response = await client.get(f"/api/bookings/{booking_id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["event"]["id"] == test_event.id

    stranger = await make_user()
    response = await client.get(f"/api/bookings/{booking_id}", headers=auth_headers_for(stranger))
    assert response.status_code == 403

    response = await client.get("/api/bookings/999999", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_requires_cancelled_booking(client: AsyncClient, auth_headers, test_event):
    booking_id = (await book(client, auth_headers, test_event.id)).json()["booking"]["id"]
    response = await client.delete(f"/api/bookings/{booking_id}", headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Only cancelled bookings can be deleted"


@pytest.mark.asyncio
async def test_owner_soft_deletes_cancelled_booking(client: AsyncClient, auth_headers, test_event):
    booking_id = (await book(client, auth_headers, test_event.id)).json()["booking"]["id"]
    await client.put(
        f"/api/bookings/{booking_id}",
        json={"status": "cancelled", "cancellation_reason": "Unwell"},
        headers=auth_headers,
    )

    response = await client.delete(f"/api/bookings/{booking_id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Booking deleted successfully"

    listing = await client.get("/api/bookings", headers=auth_headers)
    assert listing.json()["count"] == 0


@pytest.mark.asyncio
async def test_admin_hard_deletes_cancelled_booking(client: AsyncClient, auth_headers, admin_headers, test_event):
    booking_id = (await book(client, auth_headers, test_event.id)).json()["booking"]["id"]
    await client.put(f"/api/bookings/{booking_id}", json={"status": "cancelled"}, headers=admin_headers)

    response = await client.delete(f"/api/bookings/{booking_id}?hard=true", headers=admin_headers)
    assert response.json()["message"] == "Booking permanently deleted"
    assert (await client.get(f"/api/bookings/{booking_id}", headers=admin_headers)).status_code == 404


# ---------------------------------------------------------------------------
# Status check
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_check_status_without_booking(client: AsyncClient, auth_headers, test_event):
    response = await client.get(f"/api/bookings/check/{test_event.id}", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["hasBooking"] is False
    assert data["booking"] is None
    assert data["event"]["id"] == test_event.id
    assert data["availability"]["status"] == "available"
    assert data["availability"]["availableSlots"] == 10
    assert data["availability"]["isBookingOpen"] is True


@pytest.mark.asyncio
async def test_check_status_full_event_offers_waitlist(
    client: AsyncClient, make_user, auth_headers, single_seat_event
):
    await book(client, auth_headers_for(await make_user()), single_seat_event.id)

    data = (await client.get(f"/api/bookings/check/{single_seat_event.id}", headers=auth_headers)).json()
    assert data["availability"] == {
        "status": "waitlist",
        "confirmedCount": 1,
        "availableSlots": 0,
        "isBookingOpen": True,
        "deadline": data["availability"]["deadline"],
    }


@pytest.mark.asyncio
async def test_check_status_with_booking(client: AsyncClient, auth_headers, test_event):
    booking_id = (await book(client, auth_headers, test_event.id)).json()["booking"]["id"]

    data = (await client.get(f"/api/bookings/check/{test_event.id}", headers=auth_headers)).json()
    assert data["hasBooking"] is True
    assert data["booking"]["id"] == booking_id
    assert data["booking"]["status"] == "confirmed"
    assert data["availability"]["confirmedCount"] == 1


@pytest.mark.asyncio
async def test_check_status_closed_after_deadline(client: AsyncClient, auth_headers, make_event):
    event = await make_event(
        starts_at=datetime.now(timezone.utc) + timedelta(hours=2),
        booking_deadline_hours=24,
    )
    data = (await client.get(f"/api/bookings/check/{event.id}", headers=auth_headers)).json()
    assert data["availability"]["status"] == "closed"
    assert data["availability"]["isBookingOpen"] is False


# ---------------------------------------------------------------------------
# Admin console
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_event_bookings_summary(client: AsyncClient, make_user, admin_headers, single_seat_event):
    await book(client, auth_headers_for(await make_user()), single_seat_event.id)
    await book(client, auth_headers_for(await make_user()), single_seat_event.id)

    response = await client.get(f"/api/bookings/event/{single_seat_event.id}", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data["bookings"]) == 2
    assert data["bookings"][0]["user"]["email"].endswith("@example.com")
    assert data["summary"]["total"] == 2
    assert data["summary"]["confirmed"] == 1
    assert data["summary"]["waitlist"] == 1
    assert data["summary"]["noShow"] == 0
    assert data["summary"]["availableSlots"] == 0
    assert data["event"]["confirmed_count"] == 1

    waitlisted = await client.get(
        f"/api/bookings/event/{single_seat_event.id}?status=waitlist", headers=admin_headers
    )
    assert [b["status"] for b in waitlisted.json()["bookings"]] == ["waitlist"]


@pytest.mark.asyncio
async def test_event_bookings_requires_admin(client: AsyncClient, auth_headers, test_event):
    response = await client.get(f"/api/bookings/event/{test_event.id}", headers=auth_headers)
    assert response.status_code == 403
    assert response.json()["error"] == "Access denied. Admin role required."


@pytest.mark.asyncio
async def test_export_bookings_csv(client: AsyncClient, auth_headers, admin_headers, test_event):
    await book(client, auth_headers, test_event.id)

    response = await client.get(f"/api/bookings/event/{test_event.id}/export", headers=admin_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    lines = response.text.splitlines()
    assert lines[0].startswith('"Booking ID","User Name","User Email","Status"')
    assert '"Test Student","test@example.com","confirmed"' in lines[1]
