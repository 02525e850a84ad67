"""Self-instrumentation of the polling cycle."""

from shared.metrics import get_counter, get_gauge, get_histogram

SERVICE = "metrics_bus"

POLLS_TOTAL = get_counter("polls_total", "Completed fetch/aggregate cycles.", SERVICE)
POLL_FAILURES_TOTAL = get_counter(
    "poll_failures_total",
    "Cycles abandoned because the exposition could not be fetched.",
    SERVICE,
    labelnames=("reason",),
)
POLLS_SKIPPED_TOTAL = get_counter(
    "polls_skipped_total", "Ticks skipped while a cycle was still running.", SERVICE
)
PARSE_DROPPED_LINES_TOTAL = get_counter(
    "parse_dropped_lines_total", "Exposition lines dropped as malformed.", SERVICE
)
STORAGE_ERRORS_TOTAL = get_counter(
    "storage_errors_total",
    "Persistence reads/writes that failed.",
    SERVICE,
    labelnames=("operation",),
)
POLL_LATENCY_SECONDS = get_histogram(
    "poll_latency_seconds", "Duration of a full fetch/aggregate cycle.", SERVICE
)
ACTIVE_SUBSCRIBERS = get_gauge(
    "active_subscribers", "Listeners currently subscribed to the bus.", SERVICE
)
