"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at the /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reservation admission metrics
admission_attempts = Counter(
    'reservation_admissions_total',
    'Reservation admission attempts',
    ['outcome']  # committed, rejected_validation, rejected_conflict, error
)

admission_conflicts = Counter(
    'reservation_conflicts_total',
    'Slot conflicts by detection point',
    ['detected_by']  # precheck, constraint
)

admission_latency = Histogram(
    'reservation_admission_latency_seconds',
    'Reservation admission latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

cancellations = Counter(
    'reservation_cancellations_total',
    'Reservation cancellation attempts',
    ['outcome']  # cancelled, not_found
)

# Account metrics
registrations = Counter(
    'account_registrations_total',
    'Account registrations',
    ['outcome']  # created, replaced, duplicate
)

verifications = Counter(
    'account_verifications_total',
    'Email verification attempts',
    ['outcome']  # verified, invalid, expired
)

logins = Counter(
    'account_logins_total',
    'Login attempts',
    ['outcome']  # success, unknown_email, bad_credential, unverified_account
)

mail_failures = Counter(
    'mail_failures_total',
    'Outgoing mail delivery failures'
)

token_store_errors = Counter(
    'token_store_errors_total',
    'Redis token revocation store errors'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_admission(outcome: str):
    """Record admission outcome: committed, rejected_validation, rejected_conflict, error"""
    admission_attempts.labels(outcome=outcome).inc()


def record_conflict(detected_by: str):
    """Record where a slot conflict was caught: precheck or constraint."""
    admission_conflicts.labels(detected_by=detected_by).inc()


def record_cancellation(outcome: str):
    cancellations.labels(outcome=outcome).inc()


def record_registration(outcome: str):
    registrations.labels(outcome=outcome).inc()


def record_verification(outcome: str):
    verifications.labels(outcome=outcome).inc()


def record_login(outcome: str):
    logins.labels(outcome=outcome).inc()
