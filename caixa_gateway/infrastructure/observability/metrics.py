"""Prometheus metrics for computations, schedule writes and store health"""

from prometheus_client import Counter, Histogram

# Computation metrics
computation_counter = Counter(
    "caixa_computation_total",
    "Total core computations served",
    ["kind"],  # dashboard | projections | semester | intelligence | subscription
)

daily_message_counter = Counter(
    "caixa_daily_message_total",
    "Daily cash messages selected",
    ["category", "type"],  # alert | insight | educational | silence
)

health_score_histogram = Histogram(
    "caixa_health_score",
    "Distribution of computed cash health scores",
    buckets=[20, 40, 50, 60, 80, 90, 100],
)

# Write metrics
schedules_created_counter = Counter(
    "caixa_schedules_created_total",
    "Schedule rows created",
    ["schedule_type"],
)

billing_event_counter = Counter(
    "caixa_billing_events_total",
    "Billing provider events applied to profiles",
    ["status"],
)

# Store metrics
store_read_failures_counter = Counter(
    "store_read_failures_total",
    "Failed reads against the managed store",
    ["reason"],  # store | timeout
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_daily_message(category: str, message_type: str | None, score: int) -> None:
    """Record which daily message, if any, was selected along with the score"""
    daily_message_counter.labels(category=category, type=message_type or "none").inc()
    health_score_histogram.observe(score)
