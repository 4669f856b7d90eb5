"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Contended seats + waitlist
  locust -f locustfile.py --tags churn        # Cancel/rebook with promotion
  locust -f locustfile.py --tags throughput   # Test cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests

Creating events needs a staff account:
  MEDBOOK_ADMIN_EMAIL=admin@example.com MEDBOOK_ADMIN_PASSWORD=... locust ...
"""

import os
import random
import string
from locust import HttpUser, task, between, tag, events
from datetime import datetime, timezone, timedelta

# Shared state
EVENT_IDS = []
CONCURRENCY_EVENT_ID = None
CONCURRENCY_CAPACITY = int(os.getenv("MEDBOOK_CONCURRENCY_CAPACITY", "10"))

ADMIN_EMAIL = os.getenv("MEDBOOK_ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("MEDBOOK_ADMIN_PASSWORD")
PASSWORD = "loadtest123"


def random_email():
    return f"load_{random.randint(10000, 99999)}_{random.randint(0, 999)}@test.com"


def random_username():
    return "u_" + "".join(random.choices(string.ascii_lowercase, k=8))


def event_payload(title, capacity, days_ahead=30):
    starts = datetime.now(timezone.utc) + timedelta(days=days_ahead)
    return {
        "title": title,
        "description": "Load test event",
        "location": "Test",
        "starts_at": starts.isoformat(),
        "ends_at": (starts + timedelta(hours=2)).isoformat(),
        "booking_enabled": True,
        "booking_capacity": capacity,
        "allow_waitlist": True,
        "confirmation_checkbox_1_required": False,
    }


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: concurrency event gets {CONCURRENCY_CAPACITY} seats")
    if not ADMIN_EMAIL:
        print("MEDBOOK_ADMIN_EMAIL not set: scenarios that create events are skipped")
    print("=" * 60)


class StudentUser(HttpUser):
    abstract = True

    def on_start(self):
        email = random_email()
        self.client.post("/api/auth/register", json={
            "email": email,
            "username": random_username(),
            "password": PASSWORD,
        })
        resp = self.client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
        if resp.status_code == 200:
            self.headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
        else:
            self.headers = {}

    def admin_headers(self):
        if not ADMIN_EMAIL:
            return None
        resp = self.client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        if resp.status_code != 200:
            return None
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    def book(self, event_id, name):
        return self.client.post(
            "/api/bookings",
            json={"eventId": event_id, "confirmationCheckbox1Checked": True},
            headers=self.headers,
            name=name,
            catch_response=True,
        )


class ConcurrencyUser(StudentUser):
    """
    TEST 1: Concurrency - 100 users -> 10 seats, the rest waitlisted

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM event_bookings
       WHERE event_id = X AND status IN ('confirmed', 'attended', 'no_show');
    Should equal events.confirmed_count and be <= 10
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        super().on_start()
        if CONCURRENCY_EVENT_ID is None:
            admin = self.admin_headers()
            if admin:
                resp = self.client.post(
                    "/api/events",
                    json=event_payload("Concurrency Test Event", CONCURRENCY_CAPACITY),
                    headers=admin,
                )
                if resp.status_code == 201:
                    globals()["CONCURRENCY_EVENT_ID"] = resp.json()["id"]
                    print(f"\nCreated event {CONCURRENCY_EVENT_ID} with {CONCURRENCY_CAPACITY} seats\n")

    @tag("concurrency")
    @task
    def book_limited_seats(self):
        """All users fight for the same seats; losers land on the waitlist."""
        if not CONCURRENCY_EVENT_ID or not self.headers:
            return

        with self.book(CONCURRENCY_EVENT_ID, "/api/bookings [contended]") as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: already booked, or lost the retry race
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ChurnUser(StudentUser):
    """
    TEST 2: Cancel and rebook on a full event.

    Every confirmed cancellation promotes the head of the waitlist in the same
    transaction, so confirmed_count must stay at capacity throughout.

    Run: locust -f locustfile.py --tags churn -u 50 -r 25 --run-time 60s
    """
    wait_time = between(0.1, 0.5)

    @tag("churn")
    @task
    def book_then_cancel(self):
        if not CONCURRENCY_EVENT_ID or not self.headers:
            return

        with self.book(CONCURRENCY_EVENT_ID, "/api/bookings [churn]") as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")
                return

        status = self.client.get(
            f"/api/bookings/check/{CONCURRENCY_EVENT_ID}",
            headers=self.headers,
            name="/api/bookings/check/{id}",
        )
        if status.status_code != 200:
            return
        booking = status.json().get("booking")
        if not booking or not booking.get("id") or booking["status"] == "cancelled":
            return

        self.client.put(
            f"/api/bookings/{booking['id']}",
            json={"status": "cancelled", "cancellation_reason": "load test churn"},
            headers=self.headers,
            name="/api/bookings/{id} [cancel]",
        )


class ThroughputUser(HttpUser):
    """
    TEST 3: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the API, run again
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        page = random.randint(1, 5)
        resp = self.client.get(f"/api/events?page={page}&page_size=20", name="/api/events [cached]")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("throughput", "read")
    @task(3)
    def get_event_detail(self):
        if EVENT_IDS:
            self.client.get(f"/api/events/{random.choice(EVENT_IDS)}", name="/api/events/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(StudentUser):
    """
    TEST 4: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_event_id(self):
        with self.book(999999, "/api/bookings [missing event]") as resp:
            self.expect(resp, [404])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/bookings",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/bookings", json={"eventId": 1}, catch_response=True) as resp:
            self.expect(resp, [401])

    @tag("edge")
    @task
    def garbage_qr_payload(self):
        with self.client.post("/api/qr-codes/scan",
            json={"qrCodeData": "ABC123"},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [400])

    @tag("edge")
    @task
    def invalid_status_transition(self):
        with self.client.put("/api/bookings/1",
            json={"status": "bogus"},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [422])
