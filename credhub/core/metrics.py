"""Prometheus metric inventory for credhub.

Every metric the service exports is declared here; the modules that own
the behavior import the metric and increment it at the point of action.
Scraped through GET /metrics.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Credentialing pipeline
# ---------------------------------------------------------------------------

LESSON_PROGRESS_UPDATES = Counter(
    "lesson_progress_updates_total",
    "Lesson progress upserts",
    ["completed"],  # "true" | "false"
)

CERTIFICATES_ISSUED = Counter(
    "certificates_issued_total",
    "Certificate issuance calls by outcome",
    ["outcome"],  # "created" | "reissued"
)

NOTIFICATION_FAILURES = Counter(
    "notification_failures_total",
    "Best-effort notifications that could not be delivered",
    ["channel"],  # "email"
)

QR_REGENERATIONS = Counter(
    "certificate_qr_regenerations_total",
    "Verification reads that had to rebuild the QR image",
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache operations by kind",
    ["operation"],  # "hit" | "miss" | "invalidate"
)

# ---------------------------------------------------------------------------
# Attendance
# ---------------------------------------------------------------------------

CHECK_INS = Counter(
    "check_ins_total",
    "Scan check-in attempts by result",
    ["result"],  # "attended" | "already_checked_in" | "invalid_token"
)

REALTIME_PUBLISH_FAILURES = Counter(
    "realtime_publish_failures_total",
    "Registration updates that could not be published to the broker",
)

LIVE_SUBSCRIBERS = Gauge(
    "realtime_live_subscribers",
    "WebSocket sessions currently following an event",
)

QUEUE_DEPTH = Gauge(
    "task_queue_depth",
    "Number of tasks waiting in a queue",
    ["queue_name"],
)
