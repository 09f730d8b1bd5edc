"""
Prometheus metrics for monitoring.

Metrics collected:
- HTTP request duration (histogram)
- HTTP request count by status code (counter)
- Active requests (gauge)
- Cache hit/miss rate (counter)
- Background task duration (histogram)
- Permission checks, check errors and pending-role promotions (counters)
"""

from prometheus_client import Counter, Histogram, Gauge, Info


# Application info
app_info = Info("storeadmin_app", "Store Admin application information")
app_info.info({
    "version": "1.0.0",
    "environment": "development",
})

# HTTP metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests in progress",
    ["method"],
)

# Cache metrics
cache_operations_total = Counter(
    "cache_operations_total",
    "Total cache operations",
    ["operation", "hit"],
)

# Background task metrics
task_duration_seconds = Histogram(
    "task_duration_seconds",
    "Background task duration in seconds",
    ["task_name", "status"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0),
)

# RBAC metrics
rbac_checks_total = Counter(
    "rbac_checks_total",
    "Permission checks evaluated",
    ["action", "allowed"],
)

rbac_check_errors_total = Counter(
    "rbac_check_errors_total",
    "Permission checks that failed with a store error",
)

rbac_pending_promotions_total = Counter(
    "rbac_pending_promotions_total",
    "Pending role promotions attempted on user creation",
    ["result"],
)
