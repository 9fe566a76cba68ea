from prometheus_client import Counter, Gauge

RECONSTRUCTED_ASSETS_GAUGE = Gauge(
    "marketplace_reconstructor_reconstructed_assets",
    "Number of assets produced by the latest materialization",
    ["reconstructor_name"],
)

EXCLUDED_ASSETS_COUNTER = Counter(
    "marketplace_reconstructor_excluded_assets",
    "Number of assets excluded because their resolution failed",
    ["reconstructor_name"],
)

EVENT_QUERY_FAILURES_COUNTER = Counter(
    "marketplace_reconstructor_event_query_failures",
    "Number of collection-level event queries that failed and degraded to empty",
    ["reconstructor_name", "event_kind"],
)

ACTIVITY_ITEMS_GAUGE = Gauge(
    "marketplace_reconstructor_activity_items",
    "Number of entries in the latest activity feed",
    ["reconstructor_name"],
)

REFRESH_DURATION_GAUGE = Gauge(
    "marketplace_reconstructor_refresh_duration_in_secs",
    "Wall time of the latest full reconstruction pass",
    ["reconstructor_name"],
)
