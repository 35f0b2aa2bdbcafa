"""Prometheus metric definitions for sync runs.

Labels are limited to source_type and a small outcome/action enum so the
series count stays bounded regardless of how many data sources exist.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prometheus_client import (
    Counter,
    Histogram,
    CollectorRegistry,
    REGISTRY,
)
import structlog

if TYPE_CHECKING:
    from knowledge_sync.sync.models import SyncResult

logger = structlog.get_logger(__name__)

# Default registry (can be overridden for testing)
_registry: CollectorRegistry = REGISTRY


def get_metrics_registry() -> CollectorRegistry:
    """Get the current metrics registry.

    Returns:
        The CollectorRegistry used for all metrics
    """
    return _registry


SYNC_RUNS_TOTAL = Counter(
    "sync_runs_total",
    "Total number of data source sync runs",
    labelnames=["source_type", "outcome"],
    registry=_registry,
)

SYNC_DOCUMENTS_TOTAL = Counter(
    "sync_documents_total",
    "Documents touched by sync runs",
    labelnames=["source_type", "action"],
    registry=_registry,
)

SYNC_DURATION_SECONDS = Histogram(
    "sync_duration_seconds",
    "Wall-clock duration of sync runs",
    labelnames=["source_type"],
    buckets=(1, 5, 15, 30, 60, 120, 300, 600, 1800, 3600),
    registry=_registry,
)


def _outcome(result: SyncResult) -> str:
    if not result.success:
        return "failed"
    if result.errors:
        return "completed_with_warnings"
    return "completed"


def record_sync_result(source_type: str, result: SyncResult) -> None:
    """Record counters and duration for a finished sync run."""
    try:
        SYNC_RUNS_TOTAL.labels(source_type=source_type, outcome=_outcome(result)).inc()
        for action, count in (
            ("added", result.documents_added),
            ("updated", result.documents_updated),
            ("deleted", result.documents_deleted),
            ("failed", len(result.errors) if result.success else 0),
        ):
            if count:
                SYNC_DOCUMENTS_TOTAL.labels(source_type=source_type, action=action).inc(count)
        SYNC_DURATION_SECONDS.labels(source_type=source_type).observe(result.duration_seconds)
    except ValueError as e:
        logger.warning("sync_metrics_record_failed", error=str(e))
