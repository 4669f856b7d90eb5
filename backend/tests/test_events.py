"""
Tests for event endpoints.
"""

import pytest
from datetime import datetime, timezone, timedelta
from httpx import AsyncClient


def event_body(**overrides) -> dict:
    starts = datetime.now(timezone.utc) + timedelta(days=30)
    body = {
        "title": "Paediatrics Simulation Day",
        "description": "Hands-on scenarios",
        "location": "Sim Centre",
        "starts_at": starts.isoformat(),
        "ends_at": (starts + timedelta(hours=3)).isoformat(),
        "booking_capacity": 20,
        "allow_waitlist": True,
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_create_event(client: AsyncClient, admin_headers, admin_user):
    """Staff can create an event."""
    response = await client.post("/api/events", json=event_body(), headers=admin_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Paediatrics Simulation Day"
    assert data["booking_capacity"] == 20
    assert data["confirmed_count"] == 0
    assert data["available_slots"] == 20  # All seats available initially
    assert data["organizer_id"] == admin_user.id


@pytest.mark.asyncio
async def test_create_event_unlimited_capacity(client: AsyncClient, admin_headers):
    response = await client.post("/api/events", json=event_body(booking_capacity=None), headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["available_slots"] is None


@pytest.mark.asyncio
async def test_create_event_unauthenticated(client: AsyncClient):
    """Unauthenticated request returns 401."""
    response = await client.post("/api/events", json=event_body())
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_event_as_student(client: AsyncClient, auth_headers):
    response = await client.post("/api/events", json=event_body(), headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_event_in_the_past(client: AsyncClient, admin_headers):
    """Event that has already ended returns 400."""
    starts = datetime.now(timezone.utc) - timedelta(days=2)
    response = await client.post(
        "/api/events",
        json=event_body(starts_at=starts.isoformat(), ends_at=(starts + timedelta(hours=1)).isoformat()),
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Event must end in the future"


@pytest.mark.asyncio
async def test_create_event_with_naive_times_reads_as_utc(client: AsyncClient, admin_headers):
    response = await client.post(
        "/api/events",
        json=event_body(starts_at="2030-01-01T10:00:00", ends_at="2030-01-01T12:00:00"),
        headers=admin_headers,
    )
    assert response.status_code == 201
    starts_at = datetime.fromisoformat(response.json()["starts_at"].replace("Z", "+00:00"))
    assert starts_at == datetime(2030, 1, 1, 10, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_create_event_with_naive_past_times(client: AsyncClient, admin_headers):
    starts = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=2)
    response = await client.post(
        "/api/events",
        json=event_body(starts_at=starts.isoformat(), ends_at=(starts + timedelta(hours=1)).isoformat()),
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Event must end in the future"


@pytest.mark.asyncio
async def test_create_event_invalid_capacity(client: AsyncClient, admin_headers):
    """Zero capacity returns 422."""
    response = await client.post("/api/events", json=event_body(booking_capacity=0), headers=admin_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_event_ends_before_start(client: AsyncClient, admin_headers):
    starts = datetime.now(timezone.utc) + timedelta(days=3)
    response = await client.post(
        "/api/events",
        json=event_body(starts_at=starts.isoformat(), ends_at=(starts - timedelta(hours=1)).isoformat()),
        headers=admin_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_events(client: AsyncClient, test_event):
    """List events returns paginated results."""
    response = await client.get("/api/events")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["events"][0]["id"] == test_event.id
    assert data["page"] == 1
    assert data["cached"] is False


@pytest.mark.asyncio
async def test_list_events_hides_finished(client: AsyncClient, make_event):
    await make_event(starts_at=datetime.now(timezone.utc) - timedelta(days=3))
    upcoming = await make_event(title="Upcoming")

    data = (await client.get("/api/events")).json()
    assert [e["id"] for e in data["events"]] == [upcoming.id]

    everything = (await client.get("/api/events?upcoming_only=false")).json()
    assert everything["total"] == 2


@pytest.mark.asyncio
async def test_list_events_pagination(client: AsyncClient, test_event):
    """Pagination parameters work correctly."""
    response = await client.get("/api/events?page=1&page_size=5")
    assert response.status_code == 200
    assert response.json()["page_size"] == 5


@pytest.mark.asyncio
async def test_get_event(client: AsyncClient, test_event):
    """Get single event by ID."""
    response = await client.get(f"/api/events/{test_event.id}")
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == test_event.id
    assert data["title"] == "Cardiology Grand Rounds"


@pytest.mark.asyncio
async def test_get_event_not_found(client: AsyncClient):
    """Non-existent event returns 404."""
    response = await client.get("/api/events/99999")
    assert response.status_code == 404
    assert response.json() == {"error": "Event not found"}
