"""Pydantic models for the knowledge sync engine."""

from .sources import (
    EXTERNAL_ID_KEY,
    DataSource,
    DataSourceStatus,
    Document,
    DocumentChunk,
    SyncFrequency,
    as_utc,
    utc_now,
)

__all__ = [
    "EXTERNAL_ID_KEY",
    "DataSource",
    "DataSourceStatus",
    "Document",
    "DocumentChunk",
    "SyncFrequency",
    "as_utc",
    "utc_now",
]
