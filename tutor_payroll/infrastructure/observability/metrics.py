"""Prometheus metrics for monitoring compensation runs, cache efficiency and deductions"""

from prometheus_client import Counter, Histogram

# Computation metrics
compensation_counter = Counter(
    "tutor_payroll_compensation_total",
    "Compensation computations requested",
    ["outcome"],  # computed | cached | failed
)

compensation_duration_histogram = Histogram(
    "tutor_payroll_compensation_duration_seconds",
    "Time spent computing one instructor's compensation (cache misses only)",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

cache_events_counter = Counter(
    "tutor_payroll_cache_events_total",
    "Compensation cache lookups and evictions",
    ["event"],  # hit | miss | evicted | stale
)

batch_failures_counter = Counter(
    "tutor_payroll_batch_failures_total",
    "Instructors omitted from a batch computation",
    ["reason"],  # not_found | timeout | inconsistent | error
)

deduction_amount_counter = Counter(
    "tutor_payroll_deduction_cents_total",
    "Deduction amounts computed, in cents",
    ["kind"],  # lateness | absence
)

# Payment status collaborator
payment_status_failures_counter = Counter(
    "payment_status_failures_total",
    "Failed payment status lookups",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_compensation(lateness_cents: int, absence_cents: int, duration_seconds: float) -> None:
    """Record a freshly computed compensation result"""
    compensation_counter.labels(outcome="computed").inc()
    compensation_duration_histogram.observe(duration_seconds)
    deduction_amount_counter.labels(kind="lateness").inc(lateness_cents)
    deduction_amount_counter.labels(kind="absence").inc(absence_cents)


def record_cache_event(event: str, count: int = 1) -> None:
    cache_events_counter.labels(event=event).inc(count)
