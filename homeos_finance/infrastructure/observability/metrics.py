"""Prometheus metrics for recurring generation, forecasting and HTTP performance"""

from prometheus_client import Counter, Histogram

# Recurring generation metrics
generated_transactions_counter = Counter(
    "homeos_recurring_generated_total",
    "Ledger transactions generated from recurring definitions",
    ["type"],  # Income | Expense
)

generation_skipped_counter = Counter(
    "homeos_recurring_skipped_existing_total",
    "Occurrences skipped because they were already generated",
)

generation_failure_counter = Counter(
    "homeos_recurring_generation_failures_total",
    "Recurring definitions that failed during a generation run",
    ["reason"],  # integrity | validation | limit | error
)

# Forecast metrics
forecast_duration_histogram = Histogram(
    "homeos_forecast_duration_seconds",
    "Cash-flow forecast computation time",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

forecast_horizon_histogram = Histogram(
    "homeos_forecast_horizon_months",
    "Requested forecast horizons",
    buckets=[1, 3, 6, 12, 24, 60, 120],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_generation(generated_types: list[str], skipped_existing: int, failure_reasons: list[str]) -> None:
    """Record outcome counters of a generation run"""
    for txn_type in generated_types:
        generated_transactions_counter.labels(type=txn_type).inc()

    if skipped_existing:
        generation_skipped_counter.inc(skipped_existing)

    for reason in failure_reasons:
        generation_failure_counter.labels(reason=reason).inc()
