"""External data source sync.

Connectors fetch documents from external systems, the orchestrator
reconciles them with locally stored documents, and the scheduler runs the
orchestrator for every source that is due.

Example:
    from knowledge_sync.db import PostgresClient
    from knowledge_sync.sync import create_sync_orchestrator, create_sync_scheduler

    store = PostgresClient(settings.database_url)
    await store.connect()

    orchestrator = create_sync_orchestrator(store, settings)
    result = await orchestrator.sync_data_source(data_source_id, tenant_id)

    scheduler = create_sync_scheduler(orchestrator, store, settings)
    await scheduler.start()
"""

from .base import BaseConnector
from .confluence_connector import ConfluenceConnector
from .github_connector import GitHubConnector
from .google_drive_connector import GoogleDriveConnector
from .models import (
    ConfigField,
    ExternalDocument,
    FetchConfig,
    SyncResult,
    SyncSourceType,
)
from .notion_connector import NotionConnector
from .orchestrator import SyncOrchestrator, create_sync_orchestrator
from .registry import CONNECTOR_CLASSES, ConnectorRegistry, create_default_registry
from .scheduler import (
    SyncScheduler,
    create_sync_scheduler,
    cutoff_for,
    is_due,
    parse_cron_schedule,
)
from .store import ChunkingPipeline, DocumentStore

__all__ = [
    # Connectors
    "BaseConnector",
    "ConfluenceConnector",
    "GitHubConnector",
    "GoogleDriveConnector",
    "NotionConnector",
    "CONNECTOR_CLASSES",
    "ConnectorRegistry",
    "create_default_registry",
    # Models
    "ConfigField",
    "ExternalDocument",
    "FetchConfig",
    "SyncResult",
    "SyncSourceType",
    # Orchestration
    "ChunkingPipeline",
    "DocumentStore",
    "SyncOrchestrator",
    "create_sync_orchestrator",
    # Scheduling
    "SyncScheduler",
    "create_sync_scheduler",
    "cutoff_for",
    "is_due",
    "parse_cron_schedule",
]
