"""Observability helpers for sync runs."""

from .metrics import (
    SYNC_DOCUMENTS_TOTAL,
    SYNC_DURATION_SECONDS,
    SYNC_RUNS_TOTAL,
    get_metrics_registry,
    record_sync_result,
)

__all__ = [
    "SYNC_DOCUMENTS_TOTAL",
    "SYNC_DURATION_SECONDS",
    "SYNC_RUNS_TOTAL",
    "get_metrics_registry",
    "record_sync_result",
]
