"""Prometheus metrics for the harvester."""

from prometheus_client import Counter, Histogram, Info

harvester_info = Info("hookah_harvester", "Hookah harvester build info")
harvester_info.info({"version": "0.1.0", "name": "hookah-harvester"})

# Fetch metrics
http_attempts_total = Counter(
    "harvester_http_attempts_total",
    "HTTP attempts issued against the catalogue source",
    ["method", "outcome"],
)

http_retries_total = Counter(
    "harvester_http_retries_total",
    "Retries scheduled after a retryable failure",
    ["reason"],
)

http_request_duration_seconds = Histogram(
    "harvester_http_request_duration_seconds",
    "Time spent on a single HTTP attempt",
    ["method"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

# Pagination and parsing
pages_fetched_total = Counter(
    "harvester_pages_fetched_total",
    "Listing pages fetched by the pagination orchestrator",
)

records_skipped_total = Counter(
    "harvester_records_skipped_total",
    "Candidate records dropped by validation",
    ["kind"],
)

# Discovery
discovery_runs_total = Counter(
    "harvester_discovery_runs_total",
    "Flavor URL discovery runs by final strategy and outcome",
    ["strategy", "outcome"],
)

# Cache
cache_lookups_total = Counter(
    "harvester_cache_lookups_total",
    "Cache lookups by result",
    ["result"],
)
