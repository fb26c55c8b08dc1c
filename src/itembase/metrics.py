"""
Prometheus metrics definitions for the itembase SDK.

Naming conventions: snake_case, itembase_ prefix.
"""

from prometheus_client import Counter, Histogram

# ==============================================================================
# COUNTERS
# ==============================================================================

requests_total = Counter(
    "itembase_requests_total",
    "Total itembase API requests",
    ["method", "status"],
    # status: HTTP status code, or "error" for transport failures
)

drains_total = Counter(
    "itembase_drains_total",
    "Pagination drains by outcome",
    ["outcome", "anomaly"],
    # outcome: complete, capped, anomaly
    # anomaly: none, created_at_loop, empty_page, no_growth, single_item
)

documents_received_total = Counter(
    "itembase_documents_received_total",
    "Documents received from paginated collections",
)

token_events_total = Counter(
    "itembase_token_events_total",
    "OAuth2 token lifecycle events",
    ["event"],
    # event: cache_hit, refreshed, refresh_failed, authorized
)

# ==============================================================================
# HISTOGRAMS
# ==============================================================================

request_duration_seconds = Histogram(
    "itembase_request_duration_seconds",
    "itembase API request latency",
    ["method"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 120.0],
)
