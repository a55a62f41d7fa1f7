"""Prometheus collectors exposed on /metrics."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

HTTP_REQUESTS = Counter(
    "dpofast_http_requests_total",
    "HTTP requests served, by method, route template and status code",
    ["method", "route", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "dpofast_http_request_duration_seconds",
    "Request latency by method and route template",
    ["method", "route"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

DOCUMENTS_UPLOADED = Counter(
    "dpofast_documents_uploaded_total",
    "Compliance documents accepted for storage",
)

TASKS_GENERATED = Counter(
    "dpofast_tasks_generated_total",
    "Compliance tasks created from questionnaire answers",
)

TASK_TRANSITIONS = Counter(
    "dpofast_task_transitions_total",
    "Compliance task status changes",
    ["to_status"],
)

REPORTS_GENERATED = Counter(
    "dpofast_reports_generated_total",
    "PDF compliance reports rendered",
    ["report_type"],
)

WEBHOOK_EVENTS = Counter(
    "dpofast_stripe_webhook_events_total",
    "Stripe webhook events received",
    ["event_type"],
)
