"""Pydantic models for data sources and the documents synced from them."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

EXTERNAL_ID_KEY = "external_id"


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SyncFrequency(str, Enum):
    """How often the scheduler syncs a data source."""

    MANUAL = "manual"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


class DataSourceStatus(str, Enum):
    """Sync state of a data source."""

    ACTIVE = "active"
    SYNCING = "syncing"
    ERROR = "error"


class DataSource(BaseModel):
    """
    A configured connection to an external knowledge source.

    ``credentials`` and ``config`` are passed through to the connector
    untouched. Only the cross-cutting config keys (``sync_deletes``,
    ``max_documents``, ``include_patterns``, ``exclude_patterns``) are read
    by the sync engine itself.
    """

    id: UUID = Field(default_factory=uuid4, description="Data source identifier")
    tenant_id: UUID = Field(..., description="Owning tenant")
    name: str = Field(..., min_length=1, description="Display name")
    description: Optional[str] = Field(default=None)
    source_type: str = Field(..., description="Connector key, e.g. 'github'")
    credentials: dict[str, Any] = Field(
        default_factory=dict, description="Connector-specific secret blob"
    )
    config: dict[str, Any] = Field(
        default_factory=dict, description="Connector-specific settings"
    )
    sync_frequency: SyncFrequency = Field(default=SyncFrequency.DAILY)
    last_synced_at: Optional[datetime] = Field(
        default=None, description="Null means never synced"
    )
    status: DataSourceStatus = Field(default=DataSourceStatus.ACTIVE)
    error_message: Optional[str] = Field(default=None)
    is_enabled: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("last_synced_at")
    @classmethod
    def normalize_last_synced_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    @property
    def sync_deletes(self) -> bool:
        """Whether documents missing from the source are deleted locally."""
        return bool(self.config.get("sync_deletes", False))

    def get_max_documents(self, default: int) -> int:
        """Return the per-run document cap, falling back to ``default``."""
        value = self.config.get("max_documents")
        try:
            cap = int(value) if value is not None else default
        except (TypeError, ValueError):
            return default
        return cap if cap > 0 else default

    def mark_syncing(self) -> None:
        self.status = DataSourceStatus.SYNCING
        self.updated_at = utc_now()

    def mark_synced(self, synced_at: datetime) -> None:
        self.status = DataSourceStatus.ACTIVE
        self.error_message = None
        self.last_synced_at = as_utc(synced_at)
        self.updated_at = utc_now()

    def mark_failed(self, message: str) -> None:
        self.status = DataSourceStatus.ERROR
        self.error_message = message
        self.updated_at = utc_now()


class Document(BaseModel):
    """
    Local representation of one externally-sourced artifact.

    ``external_id`` is the reconciliation key and is mirrored into
    ``metadata`` so downstream consumers see it without a schema change.
    """

    id: UUID = Field(default_factory=uuid4, description="Local document identifier")
    tenant_id: UUID = Field(..., description="Owning tenant")
    data_source_id: Optional[UUID] = Field(
        default=None, description="Owning data source (None for manual uploads)"
    )
    external_id: str = Field(..., min_length=1, description="Identifier in the source system")
    title: str = Field(default="Untitled")
    content: str = Field(default="")
    content_type: str = Field(default="text/plain")
    url: Optional[str] = Field(default=None)
    source_path: Optional[str] = Field(default=None)
    tags: list[str] = Field(default_factory=list)
    category: Optional[str] = Field(default=None)
    metadata: dict[str, Any] = Field(default_factory=dict)
    chunk_count: int = Field(default=0, ge=0)
    version: int = Field(default=1, ge=1)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def mirror_external_id(self) -> "Document":
        self.metadata[EXTERNAL_ID_KEY] = self.external_id
        self.updated_at = as_utc(self.updated_at)
        return self


class DocumentChunk(BaseModel):
    """A stored chunk of a synced document."""

    document_id: UUID
    chunk_index: int = Field(..., ge=0)
    content: str
    token_count: int = Field(default=0, ge=0)
