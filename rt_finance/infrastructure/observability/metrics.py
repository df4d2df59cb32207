"""Prometheus metrics for OCR throughput, ledger activity, cache efficiency and notifications"""

from prometheus_client import Counter, Histogram

# OCR metrics
ocr_job_counter = Counter(
    "rt_finance_ocr_jobs_total",
    "Monthly fee OCR jobs processed",
    ["outcome"],  # waiting_approval | waiting_manual_input | failed
)

ocr_duration_histogram = Histogram(
    "rt_finance_ocr_duration_seconds",
    "Time spent downloading and reading one receipt",
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

# Ledger metrics
ledger_entry_counter = Counter(
    "rt_finance_ledger_entries_total",
    "Ledger entries posted",
    ["bucket", "type"],
)

ledger_rejection_counter = Counter(
    "rt_finance_ledger_rejections_total",
    "Ledger postings rejected",
    ["reason"],  # backdated | insufficient_balance
)

deferred_release_counter = Counter(
    "rt_finance_deferred_releases_total",
    "Deferred subscription release attempts",
    ["outcome"],  # released | skipped
)

# Cache metrics
breakdown_cache_counter = Counter(
    "rt_finance_breakdown_cache_total",
    "Period breakdown cache lookups",
    ["result"],  # hit | miss | error
)

# Notification metrics
notification_failure_counter = Counter(
    "rt_finance_notification_failures_total",
    "Failed Telegram notification deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_ocr_outcome(status: str) -> None:
    """Record OCR outcome keyed by the resulting payment status"""
    ocr_job_counter.labels(outcome=status.lower()).inc()


def record_ledger_entry(bucket: str, entry_type: str) -> None:
    ledger_entry_counter.labels(bucket=bucket, type=entry_type).inc()
