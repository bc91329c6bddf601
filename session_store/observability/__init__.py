"""
Observability Package

This package provides observability infrastructure including:
- Structured JSON logging with session id context
- Prometheus metrics for locks and storage
"""

from session_store.observability.logging import (
    clear_session_id,
    configure_logging,
    get_logger,
    get_session_id,
    redact_session_id,
    session_id_context,
    set_session_id,
)

from session_store.observability.metrics import (
    generate_metrics,
    record_lock_acquired,
    record_lock_renewal_failure,
    record_session_regenerated,
    record_storage_operation,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "set_session_id",
    "get_session_id",
    "clear_session_id",
    "session_id_context",
    "redact_session_id",
    # Metrics
    "generate_metrics",
    "record_lock_acquired",
    "record_lock_renewal_failure",
    "record_storage_operation",
    "record_session_regenerated",
]
