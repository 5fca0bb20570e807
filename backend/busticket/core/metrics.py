"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, conflict, rejected, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking transaction latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_retries = Counter(
    'booking_retry_attempts_total',
    'Booking retries due to trip version conflicts'
)

# Cancellation / refund metrics
cancellations = Counter(
    'ticket_cancellations_total',
    'Single-ticket cancellation attempts',
    ['status']  # success, rejected, error
)

bulk_refunds = Counter(
    'bulk_refund_tickets_total',
    'Tickets refunded because their trip or company was deleted',
    ['reason']  # trip_deleted, company_deleted
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, conflict, rejected, error"""
    booking_attempts.labels(status=status).inc()


def record_cancellation(status: str):
    cancellations.labels(status=status).inc()


def record_bulk_refund(reason: str, tickets: int):
    if tickets:
        bulk_refunds.labels(reason=reason).inc(tickets)


def record_cache_operation(operation: str, hit: bool):
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
