"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNTER = Counter(
	"civic_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"civic_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

REPORTS_SUBMITTED_TOTAL = Counter(
	"civic_reports_submitted_total",
	"Reports created, labelled by derived category",
	["category"],
)

VOTES_TOTAL = Counter(
	"civic_votes_total",
	"Vote attempts by outcome",
	["outcome"],
)

STATUS_TRANSITIONS_TOTAL = Counter(
	"civic_status_transitions_total",
	"Report status transitions applied by moderators",
	["transition"],
)

POINTS_CREDITED_TOTAL = Counter(
	"civic_points_credited_total",
	"Contribution points credited, by triggering event",
	["reason"],
)

ENHANCER_CALLS_TOTAL = Counter(
	"civic_enhancer_calls_total",
	"Text enhancement outcomes",
	["outcome"],
)

NOTIFICATIONS_TOTAL = Counter(
	"civic_notifications_total",
	"Report notifications dispatched",
	["outcome"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)
