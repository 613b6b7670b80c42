from prometheus_client import Counter, Histogram
# Prometheus metrics definitions

# Metered analysis requests that passed authentication
analysis_requests_total = Counter(
    "analysis_requests_total", "Total analysis requests"
)

# latency histogram covers the upstream vision call only
_analysis_latency_buckets = (
    0.5,
    1.0,
    2.0,
    4.0,
    8.0,
    16.0,
    32.0,
)

analysis_latency_seconds = Histogram(
    "analysis_latency_seconds",
    "Vision model call latency",
    buckets=_analysis_latency_buckets,
)

# Quota rejects (cap reached, no plan or expired plan)
quota_reject_total = Counter(
    "quota_reject_total", "Number of quota rejected requests"
)

# Ledger store failures; the metered call is not issued
ledger_error_total = Counter(
    "ledger_error_total", "Number of usage ledger failures"
)

# Token verification failures
auth_reject_total = Counter(
    "auth_reject_total", "Number of rejected bearer tokens"
)

# Vision upstream transport failures
vision_error_total = Counter(
    "vision_error_total", "Number of failed vision model calls"
)

# Purchase events
purchase_applied_total = Counter(
    "purchase_applied_total", "Purchases applied to company plans"
)

purchase_duplicate_total = Counter(
    "purchase_duplicate_total", "Redelivered purchase transactions ignored"
)

# Receipt verification rejects
receipt_reject_total = Counter(
    "receipt_reject_total", "Receipts rejected by the store"
)

__all__ = [
    "analysis_requests_total",
    "analysis_latency_seconds",
    "quota_reject_total",
    "ledger_error_total",
    "auth_reject_total",
    "vision_error_total",
    "purchase_applied_total",
    "purchase_duplicate_total",
    "receipt_reject_total",
]
