"""Sync orchestrator for reconciling external data sources.

One sync run pulls documents through the source's connector, diffs them
against the locally stored documents by external id, creates, updates and
(optionally) deletes documents, re-chunks whatever changed, and writes the
data source's final status back.

Failure handling is deliberately asymmetric. A run that cannot fetch at
all marks the data source ``error``. A single document that fails to
process or delete is recorded in ``SyncResult.errors`` and the run goes on.
"""

from typing import Any, Optional
from uuid import UUID

import structlog

from knowledge_sync.config import DEFAULT_MAX_DOCUMENTS, Settings
from knowledge_sync.core.errors import (
    DataSourceDisabledError,
    DataSourceNotFoundError,
    DeletionError,
    DocumentProcessingError,
    InvalidCredentialsError,
    SyncInProgressError,
)
from knowledge_sync.indexing.chunker import TokenChunker
from knowledge_sync.models import DataSource, DataSourceStatus, Document, utc_now
from knowledge_sync.observability.metrics import record_sync_result

from .models import ExternalDocument, FetchConfig, SyncResult
from .registry import ConnectorRegistry, create_default_registry
from .store import ChunkingPipeline, DocumentStore

logger = structlog.get_logger(__name__)


def is_stale(existing: Document, external: ExternalDocument) -> bool:
    """Whether a fetched document should overwrite the stored one.

    ``updated_at`` holds the source's modification time from the last write,
    so a strictly newer ``last_modified`` means the source changed since.
    Sources that report no timestamp fall back to a content comparison.
    """
    if external.last_modified is None:
        return external.content != existing.content
    return external.last_modified > existing.updated_at


class SyncOrchestrator:
    """Runs sync operations for data sources.

    The orchestrator is safe to share across tasks: a second run against a
    data source that is already syncing in this process is rejected with
    ``SyncInProgressError`` instead of racing the first one.

    Example:
        orchestrator = SyncOrchestrator(store, TokenChunker(), create_default_registry())
        result = await orchestrator.sync_data_source(data_source_id, tenant_id)
        results = await orchestrator.sync_all(tenant_id)
    """

    def __init__(
        self,
        store: DocumentStore,
        chunker: ChunkingPipeline,
        registry: ConnectorRegistry,
        default_max_documents: int = DEFAULT_MAX_DOCUMENTS,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Persistence for data sources, documents and chunks
            chunker: Pipeline that splits document content into chunks
            registry: Connector lookup by source type
            default_max_documents: Cap used when a source sets none
        """
        self._store = store
        self._chunker = chunker
        self._registry = registry
        self._default_max_documents = default_max_documents
        self._running: set[UUID] = set()

    @property
    def registry(self) -> ConnectorRegistry:
        return self._registry

    def is_syncing(self, data_source_id: UUID) -> bool:
        """Whether this process is currently syncing the data source."""
        return data_source_id in self._running

    async def sync_data_source(self, data_source_id: UUID, tenant_id: UUID) -> SyncResult:
        """Run one full sync for a data source.

        Args:
            data_source_id: Data source to sync
            tenant_id: Owning tenant

        Returns:
            SyncResult describing the run

        Raises:
            DataSourceNotFoundError: If the source does not exist for the tenant
            DataSourceDisabledError: If the source is disabled
            SyncInProgressError: If the source is already syncing in this process
        """
        data_source = await self._store.get_data_source(data_source_id, tenant_id)
        if data_source is None:
            raise DataSourceNotFoundError(str(data_source_id))
        if not data_source.is_enabled:
            raise DataSourceDisabledError(str(data_source_id))

        # Check-and-add without an await in between keeps this atomic on the loop
        if data_source.id in self._running:
            raise SyncInProgressError(str(data_source.id))
        self._running.add(data_source.id)
        try:
            return await self._run(data_source)
        finally:
            self._running.discard(data_source.id)

    async def sync_all(self, tenant_id: UUID) -> dict[str, SyncResult]:
        """Sync every enabled data source of a tenant, one after another.

        A source that cannot be synced at all gets a failed SyncResult; the
        remaining sources are still processed.

        Returns:
            Dict mapping data source IDs to their results
        """
        data_sources = await self._store.list_data_sources(tenant_id, enabled_only=True)
        logger.info(
            "sync_all_started",
            tenant_id=str(tenant_id),
            data_source_count=len(data_sources),
        )

        results: dict[str, SyncResult] = {}
        for data_source in data_sources:
            key = str(data_source.id)
            try:
                results[key] = await self.sync_data_source(data_source.id, tenant_id)
            except Exception as e:
                logger.error(
                    "sync_all_source_failed",
                    data_source_id=key,
                    tenant_id=str(tenant_id),
                    error=str(e),
                )
                results[key] = SyncResult.failed(key, str(e))

        logger.info(
            "sync_all_completed",
            tenant_id=str(tenant_id),
            succeeded=sum(1 for r in results.values() if r.success),
            failed=sum(1 for r in results.values() if not r.success),
        )
        return results

    async def test_connection(
        self,
        source_type: str,
        credentials: dict[str, Any],
        config: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Test connector reachability with raw inputs.

        Raises:
            ConnectorNotFoundError: If the source type is unknown
            InvalidCredentialsError: If required credential fields are missing
        """
        connector = self._registry.require(source_type)
        missing = connector.missing_credentials(credentials)
        if missing:
            raise InvalidCredentialsError(source_type, missing)
        return await connector.test_connection(credentials, config or {})

    async def _run(self, data_source: DataSource) -> SyncResult:
        log = logger.bind(
            data_source_id=str(data_source.id),
            tenant_id=str(data_source.tenant_id),
            source_type=data_source.source_type,
        )
        result = SyncResult(data_source_id=str(data_source.id))
        result.mark_started()

        # Make the transition visible before any long-running work starts
        data_source.mark_syncing()
        await self._store.save_data_source(data_source)
        log.info("sync_started")

        try:
            try:
                await self._reconcile(data_source, result, log)
            except Exception as e:
                data_source.mark_failed(str(e))
                result.success = False
                result.add_error(str(e))
                log.error("sync_failed", error=str(e), error_type=type(e).__name__)
            else:
                data_source.mark_synced(result.last_sync_timestamp)
                result.success = True
                log.info(
                    "sync_completed",
                    documents_processed=result.documents_processed,
                    documents_added=result.documents_added,
                    documents_updated=result.documents_updated,
                    documents_deleted=result.documents_deleted,
                    error_count=len(result.errors),
                )
        finally:
            result.mark_completed()
            if data_source.status == DataSourceStatus.SYNCING:
                # Interrupted (e.g. cancelled) before reaching a final state
                data_source.mark_failed("Sync interrupted")
            await self._store.save_data_source(data_source)

        record_sync_result(data_source.source_type, result)
        return result

    async def _reconcile(
        self,
        data_source: DataSource,
        result: SyncResult,
        log: Any,
    ) -> None:
        connector = self._registry.require(data_source.source_type)
        fetch_config = FetchConfig.from_data_source(data_source, self._default_max_documents)

        fetched = await connector.fetch_documents(data_source.credentials, fetch_config)
        result.documents_processed = len(fetched)
        log.info("sync_documents_fetched", count=len(fetched))

        stored = await self._store.list_documents_for_source(data_source.id, data_source.tenant_id)
        unseen: dict[str, Document] = {doc.external_id: doc for doc in stored}

        for external in fetched:
            # Seen even if processing fails below, so a failed update never
            # turns into a deletion
            existing = unseen.pop(external.external_id, None)
            try:
                if existing is None:
                    await self._create_document(data_source, external)
                    result.documents_added += 1
                elif is_stale(existing, external):
                    await self._update_document(existing, external)
                    result.documents_updated += 1
            except Exception as e:
                error = DocumentProcessingError(external.title, str(e))
                result.add_error(error.message)
                log.warning(
                    "sync_document_failed",
                    external_id=external.external_id,
                    error=str(e),
                )

        if not fetch_config.sync_deletes:
            return

        for document in unseen.values():
            try:
                if await self._store.delete_document(document.id, document.tenant_id):
                    result.documents_deleted += 1
            except Exception as e:
                error = DeletionError(document.title, str(e))
                result.add_error(error.message)
                log.warning(
                    "sync_delete_failed",
                    document_id=str(document.id),
                    external_id=document.external_id,
                    error=str(e),
                )

    async def _create_document(
        self, data_source: DataSource, external: ExternalDocument
    ) -> Document:
        document = Document(
            tenant_id=data_source.tenant_id,
            data_source_id=data_source.id,
            external_id=external.external_id,
            title=external.title,
            content=external.content,
            content_type=external.content_type,
            url=external.url or None,
            source_path=external.metadata.get("path"),
            tags=list(external.tags or []),
            category=external.category,
            metadata=dict(external.metadata),
            updated_at=external.last_modified or utc_now(),
        )
        chunks = await self._chunker.chunk(external.content, str(document.id))
        await self._store.create_document(document)
        try:
            document.chunk_count = await self._store.replace_chunks(
                document.id, document.tenant_id, chunks
            )
        except Exception:
            # Roll back so the next run sees the external id as new and retries
            await self._store.delete_document(document.id, document.tenant_id)
            raise

        logger.debug(
            "sync_document_created",
            document_id=str(document.id),
            external_id=document.external_id,
            chunk_count=document.chunk_count,
        )
        return document

    async def _update_document(
        self, document: Document, external: ExternalDocument
    ) -> Document:
        chunks = await self._chunker.chunk(external.content, str(document.id))
        # Chunks first: if the row update fails, the document still looks
        # stale next run and is retried in full
        document.chunk_count = await self._store.replace_chunks(
            document.id, document.tenant_id, chunks
        )

        document.title = external.title
        document.content = external.content
        document.content_type = external.content_type
        document.url = external.url or None
        document.tags = list(external.tags or [])
        document.category = external.category
        document.source_path = external.metadata.get("path", document.source_path)
        document.metadata = {**document.metadata, **external.metadata}
        document.metadata["external_id"] = external.external_id
        document.version += 1
        document.updated_at = external.last_modified or utc_now()
        await self._store.update_document(document)

        logger.debug(
            "sync_document_updated",
            document_id=str(document.id),
            external_id=document.external_id,
            version=document.version,
            chunk_count=document.chunk_count,
        )
        return document


def create_sync_orchestrator(
    store: DocumentStore,
    settings: Optional[Settings] = None,
    registry: Optional[ConnectorRegistry] = None,
    chunker: Optional[ChunkingPipeline] = None,
) -> SyncOrchestrator:
    """Factory function to create a configured SyncOrchestrator.

    Args:
        store: Persistence backend (e.g. a connected PostgresClient)
        settings: Optional settings for chunking, connectors and caps
        registry: Connector registry (defaults to all built-in connectors)
        chunker: Chunking pipeline (defaults to TokenChunker)

    Returns:
        Configured SyncOrchestrator instance
    """
    if chunker is None:
        chunker = (
            TokenChunker(settings.chunk_size, settings.chunk_overlap)
            if settings is not None
            else TokenChunker()
        )
    return SyncOrchestrator(
        store=store,
        chunker=chunker,
        registry=registry or create_default_registry(settings),
        default_max_documents=(
            settings.sync_default_max_documents if settings is not None else DEFAULT_MAX_DOCUMENTS
        ),
    )
