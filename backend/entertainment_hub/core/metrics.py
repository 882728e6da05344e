"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at the /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Reservation metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total reservation attempts',
    ['booking_type', 'result']  # success, not_found, insufficient_inventory, ...
)

reservation_latency = Histogram(
    'reservation_latency_seconds',
    'Reservation unit-of-work latency (lock wait included)',
    ['booking_type'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Compensation metrics
booking_cancellations = Counter(
    'booking_cancellations_total',
    'Bookings whose inventory effect was reversed',
    ['booking_type', 'path']  # cancel, admin_update, delete
)

# Locking metrics
inventory_lock_timeouts = Counter(
    'inventory_lock_timeouts_total',
    'Per-key inventory lock acquisitions that timed out',
    ['backend']  # local, redis
)

redis_lock_errors = Counter(
    'redis_lock_errors_total',
    'Redis errors while acquiring or releasing inventory locks'
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(booking_type: str, result: str):
    booking_attempts.labels(booking_type=booking_type, result=result).inc()


def observe_reservation_latency(booking_type: str, seconds: float):
    reservation_latency.labels(booking_type=booking_type).observe(seconds)


def record_cancellation(booking_type: str, path: str):
    """Path: cancel, admin_update, delete"""
    booking_cancellations.labels(booking_type=booking_type, path=path).inc()


def record_lock_timeout(backend: str):
    inventory_lock_timeouts.labels(backend=backend).inc()
