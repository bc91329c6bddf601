"""
Prometheus Metrics Module

This module provides Prometheus metrics for lock and storage activity.

Pattern: Metrics collection for observability

Session ids are never used as label values: they are unbounded (cardinality)
and secret. Labels are limited to backend, operation and result.
"""

from prometheus_client import REGISTRY, Counter, Histogram, generate_latest

# =============================================================================
# Lock Metrics
# =============================================================================

LOCK_ACQUISITIONS_TOTAL = Counter(
    name="session_store_lock_acquisitions_total",
    documentation="Total number of keyed mutex leases granted",
    labelnames=["backend"],
)

LOCK_WAIT_SECONDS = Histogram(
    name="session_store_lock_wait_seconds",
    documentation="Time spent waiting for a keyed mutex lease",
    labelnames=["backend"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

LOCK_RENEWAL_FAILURES_TOTAL = Counter(
    name="session_store_lock_renewal_failures_total",
    documentation="Total number of lease renewals that failed or found the lease lost",
    labelnames=["backend"],
)

# =============================================================================
# Storage Metrics
# =============================================================================

STORAGE_OPERATIONS_TOTAL = Counter(
    name="session_store_storage_operations_total",
    documentation="Total storage operations by backend, operation and result",
    labelnames=["backend", "operation", "result"],
)

SESSIONS_REGENERATED_TOTAL = Counter(
    name="session_store_sessions_regenerated_total",
    documentation="Total number of session identifier regenerations",
)


# =============================================================================
# Helper Functions
# =============================================================================


def record_lock_acquired(backend: str, wait_seconds: float) -> None:
    """
    Record a granted lease and how long the caller waited for it.

    Args:
        backend: Mutex backend ("local", "redis")
        wait_seconds: Seconds between the acquire call and the grant
    """
    LOCK_ACQUISITIONS_TOTAL.labels(backend=backend).inc()
    LOCK_WAIT_SECONDS.labels(backend=backend).observe(wait_seconds)


def record_lock_renewal_failure(backend: str) -> None:
    """Record a failed lease renewal."""
    LOCK_RENEWAL_FAILURES_TOTAL.labels(backend=backend).inc()


def record_storage_operation(backend: str, operation: str, result: str) -> None:
    """
    Record a storage operation.

    Args:
        backend: Storage backend ("local", "redis")
        operation: "read", "write" or "delete"
        result: "hit", "miss", "ok" or "error"
    """
    STORAGE_OPERATIONS_TOTAL.labels(
        backend=backend,
        operation=operation,
        result=result,
    ).inc()


def record_session_regenerated() -> None:
    """Record a session identifier regeneration."""
    SESSIONS_REGENERATED_TOTAL.inc()


def generate_metrics() -> bytes:
    """
    Generate the Prometheus text exposition of the default registry.

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)
