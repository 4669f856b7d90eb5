"""
Prometheus metrics for the booking lifecycle and QR attendance.
Exposed at /metrics.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

booking_attempts = Counter(
    "medbook_booking_attempts_total",
    "Booking submissions by outcome",
    ["outcome"],  # confirmed, waitlist, pending, rejected, conflict
)

booking_transitions = Counter(
    "medbook_booking_transitions_total",
    "Booking status transitions",
    ["from_status", "to_status"],
)

waitlist_promotions = Counter(
    "medbook_waitlist_promotions_total",
    "Waitlisted bookings promoted to confirmed",
)

capacity_retries = Counter(
    "medbook_capacity_retry_attempts_total",
    "Optimistic lock retries on the event capacity counter",
)

qr_scans = Counter(
    "medbook_qr_scans_total",
    "QR attendance scans by outcome",
    ["outcome"],  # success, duplicate, rejected
)

cache_operations = Counter(
    "medbook_cache_operations_total",
    "Cache operations",
    ["operation", "result"],
)

request_latency = Histogram(
    "medbook_request_latency_seconds",
    "HTTP request latency",
    ["method", "status_code"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)


def metrics_endpoint() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def record_booking_attempt(outcome: str):
    booking_attempts.labels(outcome=outcome).inc()


def record_transition(from_status: str, to_status: str):
    booking_transitions.labels(from_status=from_status, to_status=to_status).inc()


def record_qr_scan(outcome: str):
    qr_scans.labels(outcome=outcome).inc()


def record_cache_operation(operation: str, hit: bool):
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
