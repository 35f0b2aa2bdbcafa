"""Data models for external data source sync.

This module defines the transient models exchanged between connectors,
the sync orchestrator and the scheduler. Persisted records live in
``knowledge_sync.models``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from knowledge_sync.models import DataSource, as_utc, utc_now


class SyncSourceType(str, Enum):
    """Supported sync source types."""

    GITHUB = "github"
    CONFLUENCE = "confluence"
    NOTION = "notion"
    GOOGLE_DRIVE = "google-drive"


@dataclass
class ConfigField:
    """Schema entry for one connector configuration field.

    Attributes:
        type: Field type name (string, boolean, integer, array)
        description: Help text shown in the configuration UI
        required: Whether the field must be provided
        default: Value used when the field is omitted
    """

    type: str
    description: str
    required: bool = False
    default: Any = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "description": self.description,
            "required": self.required,
        }
        if self.default is not None:
            data["default"] = self.default
        return data


@dataclass
class ExternalDocument:
    """A document as reported by a connector.

    Attributes:
        external_id: Stable identifier assigned by the source system
        title: Human-readable title
        content: Extracted text content
        content_type: MIME type of ``content``
        url: Link back to the document in the source system
        last_modified: Last modification time reported by the source, or
            None when the source does not expose one
        metadata: Connector-specific fields (path, author, version, ...)
        tags: Optional labels
        category: Optional category
    """

    external_id: str
    title: str
    content: str
    content_type: str = "text/plain"
    url: str = ""
    last_modified: Optional[datetime] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    tags: Optional[list[str]] = None
    category: Optional[str] = None

    def __post_init__(self) -> None:
        if self.last_modified is not None:
            self.last_modified = as_utc(self.last_modified)


@dataclass
class FetchConfig:
    """Configuration handed to ``BaseConnector.fetch_documents``.

    Attributes:
        settings: Connector-specific settings from ``DataSource.config``
        last_sync_timestamp: When the source was last synced (None = never)
        max_documents: Cap on the number of documents returned
        sync_deletes: Whether missing documents will be deleted
        include_patterns: Glob patterns a document path must match
        exclude_patterns: Glob patterns that drop a document
    """

    settings: dict[str, Any] = field(default_factory=dict)
    last_sync_timestamp: Optional[datetime] = None
    max_documents: int = 100
    sync_deletes: bool = False
    include_patterns: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=list)

    @property
    def incremental_since(self) -> Optional[datetime]:
        """Timestamp connectors filter on server-side, or None for a full listing.

        Deletion sync needs a full listing: absence from the fetch only
        means "deleted upstream" when nothing was filtered out by time.
        """
        if self.sync_deletes:
            return None
        return self.last_sync_timestamp

    def get(self, key: str, default: Any = None) -> Any:
        """Read a connector-specific setting."""
        value = self.settings.get(key)
        return default if value is None else value

    @classmethod
    def from_data_source(cls, data_source: DataSource, default_max_documents: int) -> "FetchConfig":
        config = data_source.config
        return cls(
            settings=dict(config),
            last_sync_timestamp=data_source.last_synced_at,
            max_documents=data_source.get_max_documents(default_max_documents),
            sync_deletes=data_source.sync_deletes,
            include_patterns=list(config.get("include_patterns") or []),
            exclude_patterns=list(config.get("exclude_patterns") or []),
        )


@dataclass
class SyncResult:
    """Result of one sync run against one data source.

    Attributes:
        data_source_id: Source that was synced
        success: False when the run failed before reconciliation finished
        documents_processed: Number of documents returned by the connector
        documents_added: Number of new documents stored
        documents_updated: Number of existing documents refreshed
        documents_deleted: Number of documents removed
        errors: Ordered per-document (or run-level) error strings
        last_sync_timestamp: Value written back as ``last_synced_at``
        started_at: When the run started
        completed_at: When the run completed
        duration_seconds: Total duration in seconds
    """

    data_source_id: Optional[str] = None
    success: bool = False
    documents_processed: int = 0
    documents_added: int = 0
    documents_updated: int = 0
    documents_deleted: int = 0
    errors: list[str] = field(default_factory=list)
    last_sync_timestamp: datetime = field(default_factory=utc_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0.0

    @property
    def has_warnings(self) -> bool:
        """True for a successful run that still collected errors."""
        return self.success and bool(self.errors)

    def mark_started(self) -> None:
        self.started_at = utc_now()
        self.last_sync_timestamp = self.started_at

    def mark_completed(self) -> None:
        self.completed_at = utc_now()
        if self.started_at:
            self.duration_seconds = (self.completed_at - self.started_at).total_seconds()

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    @classmethod
    def failed(cls, data_source_id: Optional[str], message: str) -> "SyncResult":
        """Build a result for a run that never got going."""
        result = cls(data_source_id=data_source_id)
        result.add_error(message)
        return result

    def to_dict(self) -> dict[str, Any]:
        return {
            "data_source_id": self.data_source_id,
            "success": self.success,
            "documents_processed": self.documents_processed,
            "documents_added": self.documents_added,
            "documents_updated": self.documents_updated,
            "documents_deleted": self.documents_deleted,
            "errors": list(self.errors),
            "last_sync_timestamp": self.last_sync_timestamp.isoformat(),
            "duration_seconds": self.duration_seconds,
        }
