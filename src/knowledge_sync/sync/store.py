"""Collaborator protocols used by the sync orchestrator and scheduler."""

from datetime import datetime
from typing import Optional, Protocol, Sequence
from uuid import UUID

from knowledge_sync.indexing.chunker import ChunkData
from knowledge_sync.models import DataSource, Document, SyncFrequency


class DocumentStore(Protocol):
    """Persistence for data sources, documents and their chunks.

    Each call is assumed to be individually atomic. A sync run as a whole is
    not transactional: documents processed before a crash stay committed.
    """

    async def get_data_source(
        self, data_source_id: UUID, tenant_id: UUID
    ) -> Optional[DataSource]:
        ...

    async def list_data_sources(
        self, tenant_id: UUID, enabled_only: bool = True
    ) -> list[DataSource]:
        ...

    async def list_due_data_sources(
        self, cutoffs: dict[SyncFrequency, datetime]
    ) -> list[DataSource]:
        """Enabled sources whose frequency is a key of ``cutoffs`` and whose
        ``last_synced_at`` is null or older than that frequency's cutoff."""
        ...

    async def save_data_source(self, data_source: DataSource) -> None:
        ...

    async def list_documents_for_source(
        self, data_source_id: UUID, tenant_id: UUID
    ) -> list[Document]:
        ...

    async def create_document(self, document: Document) -> Document:
        ...

    async def update_document(self, document: Document) -> Document:
        ...

    async def delete_document(self, document_id: UUID, tenant_id: UUID) -> bool:
        """Delete a document and its chunks."""
        ...

    async def replace_chunks(
        self, document_id: UUID, tenant_id: UUID, chunks: Sequence[ChunkData]
    ) -> int:
        """Discard existing chunks of a document, store ``chunks`` and its
        ``chunk_count``, and return the count."""
        ...


class ChunkingPipeline(Protocol):
    """Turns raw text into an ordered list of chunks."""

    async def chunk(self, text: str, document_id: Optional[str] = None) -> list[ChunkData]:
        ...
