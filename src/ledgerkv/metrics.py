"""metrics.py - Prometheus metrics for ledgerkv invocations and scans"""

from __future__ import annotations

from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram


def create_metrics(registry: CollectorRegistry | None = None) -> dict[str, Any]:
    """Build the ledgerkv metric set on ``registry`` (default: global registry)."""
    kwargs = {} if registry is None else {"registry": registry}
    invocations = Counter(
        "ledgerkv_invocations_total",
        "Total number of chaincode invocations",
        ["function", "status"],
        **kwargs,
    )
    invocation_seconds = Histogram(
        "ledgerkv_invocation_seconds",
        "Time spent serving one invocation",
        ["function"],
        **kwargs,
    )
    bulk_item_failures = Counter(
        "ledgerkv_bulk_item_failures_total",
        "Bulk operation items that failed individually",
        ["function"],
        **kwargs,
    )
    scan_skipped_entries = Counter(
        "ledgerkv_scan_skipped_entries_total",
        "Scan entries skipped because their composite key could not be used",
        ["function"],
        **kwargs,
    )
    return {
        "invocations": invocations,
        "invocation_seconds": invocation_seconds,
        "bulk_item_failures": bulk_item_failures,
        "scan_skipped_entries": scan_skipped_entries,
    }


# Default global metrics (for production)
_default_metrics = create_metrics()
invocations = _default_metrics["invocations"]
invocation_seconds = _default_metrics["invocation_seconds"]
bulk_item_failures = _default_metrics["bulk_item_failures"]
scan_skipped_entries = _default_metrics["scan_skipped_entries"]
