"""Prometheus metrics for the OVH resource operator."""

from prometheus_client import Counter, Histogram, Gauge, Info

# Reconciliation metrics (Kubernetes host adapter)
RECONCILE_TOTAL = Counter(
    "ovh_operator_reconcile_total",
    "Total number of reconciliations",
    ["resource_type", "operation", "status"],
)

RECONCILE_DURATION = Histogram(
    "ovh_operator_reconcile_duration_seconds",
    "Time spent in reconciliation",
    ["resource_type", "operation"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

RECONCILE_IN_PROGRESS = Gauge(
    "ovh_operator_reconcile_in_progress",
    "Number of reconciliations currently in progress",
    ["resource_type"],
)

# Provisioner outcomes, as seen by the host
PROVISIONER_OPERATIONS = Counter(
    "ovh_operator_provisioner_operations_total",
    "Total number of provisioner operations by outcome",
    ["resource_type", "operation", "status"],
)

# OVH API metrics
OVH_API_CALLS = Counter(
    "ovh_operator_ovh_api_calls_total",
    "Total number of OVH API calls",
    ["method", "status"],
)

OVH_API_DURATION = Histogram(
    "ovh_operator_ovh_api_duration_seconds",
    "Time spent in OVH API calls",
    ["method"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

RATE_LIMIT_WAIT_SECONDS = Histogram(
    "ovh_operator_rate_limit_wait_seconds",
    "Time spent waiting for rate limit slot",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

# Operator info
OPERATOR_INFO = Info(
    "ovh_operator",
    "Information about the OVH resource operator",
)


def set_operator_info(version: str, endpoint: str) -> None:
    """Set operator info labels."""
    OPERATOR_INFO.info({"version": version, "endpoint": endpoint})


def init_metrics(resource_types: list[str]) -> None:
    """Initialize all metrics with zero values.

    Prometheus metrics with labels don't appear until used.
    This ensures all metrics are visible immediately at startup.
    """
    operations = ["create", "update", "delete", "check_status"]
    statuses = ["success", "in_progress", "error"]

    for resource_type in resource_types:
        RECONCILE_IN_PROGRESS.labels(resource_type=resource_type).set(0)
        for operation in operations:
            RECONCILE_DURATION.labels(resource_type=resource_type, operation=operation)
            for status in statuses:
                RECONCILE_TOTAL.labels(
                    resource_type=resource_type, operation=operation, status=status
                )

    for method in ["GET", "POST", "PUT", "DELETE"]:
        OVH_API_DURATION.labels(method=method)
        for status in ["success", "error"]:
            OVH_API_CALLS.labels(method=method, status=status)
