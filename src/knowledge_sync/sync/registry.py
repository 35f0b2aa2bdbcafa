"""Connector registry mapping source types to connector instances.

Adding a new data source connector:
  1. Subclass BaseConnector in this package
  2. Add it to ``CONNECTOR_CLASSES`` below
"""

from typing import Any, Optional

import structlog

from knowledge_sync.config import Settings
from knowledge_sync.core.errors import ConnectorNotFoundError

from .base import BaseConnector
from .confluence_connector import ConfluenceConnector
from .github_connector import GitHubConnector
from .google_drive_connector import GoogleDriveConnector
from .models import SyncSourceType
from .notion_connector import NotionConnector

logger = structlog.get_logger(__name__)

CONNECTOR_CLASSES: dict[SyncSourceType, type[BaseConnector]] = {
    SyncSourceType.GITHUB: GitHubConnector,
    SyncSourceType.CONFLUENCE: ConfluenceConnector,
    SyncSourceType.NOTION: NotionConnector,
    SyncSourceType.GOOGLE_DRIVE: GoogleDriveConnector,
}


class ConnectorRegistry:
    """Lookup table from source-type key to connector instance.

    Example:
        registry = ConnectorRegistry()
        registry.register(GitHubConnector())
        connector = registry.require("github")
    """

    def __init__(self) -> None:
        self._connectors: dict[str, BaseConnector] = {}

    def register(self, connector: BaseConnector) -> None:
        key = connector.source_type.value
        if key in self._connectors:
            logger.warning("connector_replaced", source_type=key)
        self._connectors[key] = connector
        logger.debug("connector_registered", source_type=key)

    def get(self, source_type: str) -> Optional[BaseConnector]:
        return self._connectors.get(source_type)

    def require(self, source_type: str) -> BaseConnector:
        """Return the connector for ``source_type``.

        Raises:
            ConnectorNotFoundError: If no connector is registered for it
        """
        connector = self._connectors.get(source_type)
        if connector is None:
            raise ConnectorNotFoundError(source_type, supported=self.source_types())
        return connector

    def source_types(self) -> list[str]:
        return sorted(self._connectors)

    def supported_source_types(self) -> list[dict[str, Any]]:
        """Connector metadata (name, credential fields, config schema) per type."""
        return [self._connectors[key].describe() for key in self.source_types()]

    def validate_source_config(
        self,
        source_type: str,
        credentials: Any,
        config: Optional[dict[str, Any]] = None,
    ) -> list[str]:
        """Validate data source inputs before the source is created.

        Returns:
            Human-readable problems; empty when the inputs are acceptable

        Raises:
            ConnectorNotFoundError: If the source type is unknown
        """
        connector = self.require(source_type)
        settings = config or {}
        problems = [
            f"Missing credential field: {name}"
            for name in connector.missing_credentials(credentials)
        ]
        for name, field in connector.config_schema().items():
            if field.required and settings.get(name) in (None, ""):
                problems.append(f"Missing required config field: {name}")
        return problems


def create_default_registry(settings: Optional[Settings] = None) -> ConnectorRegistry:
    """Factory function to build a registry with every built-in connector.

    Args:
        settings: Optional settings supplying connector timeout and retries

    Returns:
        Populated ConnectorRegistry
    """
    options: dict[str, Any] = {}
    if settings is not None:
        options = {
            "http_timeout_seconds": settings.connector_http_timeout_seconds,
            "max_retries": settings.connector_max_retries,
        }

    registry = ConnectorRegistry()
    for connector_class in CONNECTOR_CLASSES.values():
        registry.register(connector_class(**options))
    return registry
