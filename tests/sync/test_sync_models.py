"""Tests for sync dataclasses (ExternalDocument, FetchConfig, SyncResult)."""

from datetime import datetime, timezone
from uuid import uuid4

from knowledge_sync.models import DataSource
from knowledge_sync.sync.models import (
    ConfigField,
    ExternalDocument,
    FetchConfig,
    SyncResult,
)


class TestConfigField:
    """Tests for ConfigField."""

    def test_to_dict_omits_missing_default(self):
        assert ConfigField("string", "Space key").to_dict() == {
            "type": "string",
            "description": "Space key",
            "required": False,
        }

    def test_to_dict_with_default(self):
        data = ConfigField("boolean", "Archived", default=False).to_dict()
        assert data["default"] is False


class TestExternalDocument:
    """Tests for ExternalDocument."""

    def test_naive_timestamp_normalized(self):
        doc = ExternalDocument(
            external_id="1", title="A", content="x", last_modified=datetime(2024, 1, 1)
        )
        assert doc.last_modified.tzinfo == timezone.utc

    def test_last_modified_defaults_to_unknown(self):
        doc = ExternalDocument(external_id="1", title="A", content="x")
        assert doc.last_modified is None


class TestFetchConfig:
    """Tests for FetchConfig."""

    def test_get_treats_none_as_missing(self):
        config = FetchConfig(settings={"branch": None, "path": "docs/"})

        assert config.get("branch", "main") == "main"
        assert config.get("path") == "docs/"

    def test_incremental_since(self):
        """Test deletion sync forces a full listing."""
        since = datetime(2024, 1, 1, tzinfo=timezone.utc)

        assert FetchConfig(last_sync_timestamp=since).incremental_since == since
        assert FetchConfig(last_sync_timestamp=since, sync_deletes=True).incremental_since is None

    def test_from_data_source(self):
        ds = DataSource(
            tenant_id=uuid4(),
            name="Docs",
            source_type="github",
            config={"owner": "acme", "exclude_patterns": ["drafts/*"], "sync_deletes": True},
        )

        config = FetchConfig.from_data_source(ds, default_max_documents=50)

        assert config.settings["owner"] == "acme"
        assert config.max_documents == 50
        assert config.sync_deletes is True
        assert config.exclude_patterns == ["drafts/*"]
        assert config.include_patterns == []
        assert config.last_sync_timestamp is None


class TestSyncResult:
    """Tests for SyncResult."""

    def test_defaults(self):
        result = SyncResult()
        assert result.success is False
        assert result.documents_processed == 0
        assert result.errors == []

    def test_mark_started_and_completed(self):
        """Test the start time becomes the sync timestamp."""
        result = SyncResult(data_source_id="ds-1")
        result.mark_started()
        result.mark_completed()

        assert result.last_sync_timestamp == result.started_at
        assert result.duration_seconds >= 0

    def test_has_warnings(self):
        result = SyncResult(success=True)
        assert result.has_warnings is False
        result.add_error("Doc: failed")
        assert result.has_warnings is True

    def test_failed(self):
        result = SyncResult.failed("ds-1", "Data source is disabled")
        assert result.success is False
        assert result.errors == ["Data source is disabled"]

    def test_to_dict(self):
        result = SyncResult(data_source_id="ds-1", success=True, documents_added=2)

        data = result.to_dict()

        assert data["data_source_id"] == "ds-1"
        assert data["documents_added"] == 2
        assert data["last_sync_timestamp"] == result.last_sync_timestamp.isoformat()
