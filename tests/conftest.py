"""pytest fixtures for knowledge sync tests."""

import os

# Set environment variables BEFORE any imports
os.environ.setdefault("DATABASE_URL", "postgresql://localhost/test")

from datetime import datetime
from typing import Any, Optional, Sequence
from uuid import UUID, uuid4

import httpx
import pytest

from knowledge_sync.core.errors import ChunkingError, DatabaseError
from knowledge_sync.indexing.chunker import ChunkData
from knowledge_sync.models import DataSource, Document, SyncFrequency
from knowledge_sync.sync.base import BaseConnector
from knowledge_sync.sync.models import (
    ConfigField,
    ExternalDocument,
    FetchConfig,
    SyncSourceType,
)
from knowledge_sync.sync.orchestrator import SyncOrchestrator
from knowledge_sync.sync.registry import ConnectorRegistry


class InMemoryDocumentStore:
    """DocumentStore backed by dicts.

    Records are copied on the way in and out so callers cannot mutate
    stored state without going through the store, as with a database.
    """

    def __init__(self) -> None:
        self.data_sources: dict[UUID, DataSource] = {}
        self.documents: dict[UUID, Document] = {}
        self.chunks: dict[UUID, list[ChunkData]] = {}
        self.saved_statuses: list[str] = []
        self.failing_writes: set[str] = set()
        self.failing_deletes: set[str] = set()

    def add_data_source(self, data_source: DataSource) -> DataSource:
        self.data_sources[data_source.id] = data_source.model_copy(deep=True)
        return data_source

    def add_document(self, document: Document) -> Document:
        self.documents[document.id] = document.model_copy(deep=True)
        self.chunks[document.id] = []
        return document

    def documents_for(self, data_source_id: UUID) -> list[Document]:
        return [
            doc.model_copy(deep=True)
            for doc in self.documents.values()
            if doc.data_source_id == data_source_id
        ]

    def document_by_external_id(self, data_source_id: UUID, external_id: str) -> Optional[Document]:
        for doc in self.documents_for(data_source_id):
            if doc.external_id == external_id:
                return doc
        return None

    async def get_data_source(self, data_source_id: UUID, tenant_id: UUID) -> Optional[DataSource]:
        data_source = self.data_sources.get(data_source_id)
        if data_source is None or data_source.tenant_id != tenant_id:
            return None
        return data_source.model_copy(deep=True)

    async def list_data_sources(self, tenant_id: UUID, enabled_only: bool = True) -> list[DataSource]:
        return [
            ds.model_copy(deep=True)
            for ds in self.data_sources.values()
            if ds.tenant_id == tenant_id and (ds.is_enabled or not enabled_only)
        ]

    async def list_due_data_sources(self, cutoffs: dict[SyncFrequency, datetime]) -> list[DataSource]:
        due = []
        for ds in self.data_sources.values():
            if not ds.is_enabled or ds.sync_frequency not in cutoffs:
                continue
            if ds.last_synced_at is None or ds.last_synced_at < cutoffs[ds.sync_frequency]:
                due.append(ds.model_copy(deep=True))
        return due

    async def save_data_source(self, data_source: DataSource) -> None:
        self.saved_statuses.append(data_source.status.value)
        self.data_sources[data_source.id] = data_source.model_copy(deep=True)

    async def list_documents_for_source(self, data_source_id: UUID, tenant_id: UUID) -> list[Document]:
        return [doc for doc in self.documents_for(data_source_id) if doc.tenant_id == tenant_id]

    async def create_document(self, document: Document) -> Document:
        if document.external_id in self.failing_writes:
            raise DatabaseError("create_document", "connection reset")
        if self.document_by_external_id(document.data_source_id, document.external_id):
            raise DatabaseError("create_document", "duplicate key value violates unique constraint")
        return self.add_document(document)

    async def update_document(self, document: Document) -> Document:
        if document.external_id in self.failing_writes:
            raise DatabaseError("update_document", "connection reset")
        if document.id not in self.documents:
            raise DatabaseError("update_document", "document not found")
        self.documents[document.id] = document.model_copy(deep=True)
        return document

    async def delete_document(self, document_id: UUID, tenant_id: UUID) -> bool:
        document = self.documents.get(document_id)
        if document is None or document.tenant_id != tenant_id:
            return False
        if document.external_id in self.failing_deletes:
            raise DatabaseError("delete_document", "lock timeout")
        del self.documents[document_id]
        self.chunks.pop(document_id, None)
        return True

    async def replace_chunks(
        self, document_id: UUID, tenant_id: UUID, chunks: Sequence[ChunkData]
    ) -> int:
        self.chunks[document_id] = list(chunks)
        stored = self.documents.get(document_id)
        if stored is not None:
            stored.chunk_count = len(chunks)
        return len(chunks)


class FakeChunker:
    """Splits on blank lines; raises for content containing ``FAIL_CHUNK``."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.document_ids: list[Optional[str]] = []

    async def chunk(self, text: str, document_id: Optional[str] = None) -> list[ChunkData]:
        self.calls.append(text)
        self.document_ids.append(document_id)
        if "FAIL_CHUNK" in text:
            raise ChunkingError(document_id, "tokenizer exploded")
        pieces = [p.strip() for p in text.split("\n\n") if p.strip()]
        return [
            ChunkData(content=piece, chunk_index=i, token_count=len(piece.split()))
            for i, piece in enumerate(pieces)
        ]


class StubConnector(BaseConnector):
    """Connector returning canned documents without any HTTP traffic."""

    source_type = SyncSourceType.GITHUB
    display_name = "Stub"
    required_credentials = ("token",)

    def __init__(self) -> None:
        super().__init__()
        self.documents: list[ExternalDocument] = []
        self.error: Optional[Exception] = None
        self.reachable = True
        self.fetch_configs: list[FetchConfig] = []

    def config_schema(self) -> dict[str, ConfigField]:
        return {"repo": ConfigField("string", "Repository", required=True)}

    def _client_options(self, credentials: dict[str, Any], settings: dict[str, Any]) -> dict[str, Any]:
        return {}

    async def _check_connection(self, client: httpx.AsyncClient, settings: dict[str, Any]) -> None:
        if not self.reachable:
            raise httpx.ConnectError("unreachable")

    async def _fetch(
        self, client: httpx.AsyncClient, credentials: dict[str, Any], config: FetchConfig
    ) -> list[ExternalDocument]:
        return list(self.documents)

    async def fetch_documents(
        self, credentials: dict[str, Any], config: FetchConfig
    ) -> list[ExternalDocument]:
        self.fetch_configs.append(config)
        if self.error is not None:
            raise self.error
        return list(self.documents)[: config.max_documents]


@pytest.fixture
def sample_tenant_id():
    """Provide a sample tenant ID."""
    return uuid4()


@pytest.fixture
def store():
    """Provide an empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def chunker():
    """Provide a fake chunking pipeline."""
    return FakeChunker()


@pytest.fixture
def connector():
    """Provide a stub connector registered as 'github'."""
    return StubConnector()


@pytest.fixture
def registry(connector):
    """Provide a registry holding only the stub connector."""
    registry = ConnectorRegistry()
    registry.register(connector)
    return registry


@pytest.fixture
def orchestrator(store, chunker, registry):
    """Provide an orchestrator wired to the in-memory fakes."""
    return SyncOrchestrator(store=store, chunker=chunker, registry=registry)


@pytest.fixture
def data_source(store, sample_tenant_id):
    """Provide a stored, enabled data source that has never been synced."""
    return store.add_data_source(
        DataSource(
            tenant_id=sample_tenant_id,
            name="Engineering handbook",
            source_type="github",
            credentials={"token": "ghp_test"},
            config={"repo": "handbook"},
            sync_frequency=SyncFrequency.HOURLY,
        )
    )
