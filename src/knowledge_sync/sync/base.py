"""Base connector contract for external data source sync.

Every connector answers three questions about one kind of external system:
are these credentials well formed, can we reach the system with them, and
which documents does it currently hold. Connectors are stateless; each call
opens its own HTTP client with the connector's per-request timeout.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from fnmatch import fnmatch
from typing import Any, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from knowledge_sync.core.errors import ConnectionFailureError

from .models import ConfigField, ExternalDocument, FetchConfig, SyncSourceType

logger = structlog.get_logger(__name__)

DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 3


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as returned by most REST APIs."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return None


class BaseConnector(ABC):
    """Abstract base class for sync connectors.

    Subclasses describe their credentials and configuration, build the HTTP
    client options, and implement ``_check_connection`` and ``_fetch``. The
    base class handles the client lifecycle, retries on transient transport
    errors, path filtering, the document cap, and error translation.

    Example:
        class MyConnector(BaseConnector):
            source_type = SyncSourceType.NOTION
            display_name = "My System"
            required_credentials = ("token",)

            def config_schema(self) -> dict[str, ConfigField]:
                ...

            def _client_options(self, credentials, settings) -> dict[str, Any]:
                ...

            async def _check_connection(self, client, settings) -> None:
                ...

            async def _fetch(self, client, credentials, config) -> list[ExternalDocument]:
                ...
    """

    source_type: SyncSourceType
    display_name: str
    required_credentials: tuple[str, ...] = ()

    def __init__(
        self,
        http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the connector.

        Args:
            http_timeout_seconds: Timeout applied to every HTTP request
            max_retries: Attempts per request on transient transport errors
            transport: Optional transport override (used by tests)
        """
        self.http_timeout_seconds = http_timeout_seconds
        self.max_retries = max_retries
        self._transport = transport
        self._logger = logger.bind(source_type=self.source_type.value)

    @abstractmethod
    def config_schema(self) -> dict[str, ConfigField]:
        """Describe the connector-specific configuration fields."""
        ...

    @abstractmethod
    def _client_options(
        self, credentials: dict[str, Any], settings: dict[str, Any]
    ) -> dict[str, Any]:
        """Return ``httpx.AsyncClient`` keyword arguments (base_url, headers, auth)."""
        ...

    @abstractmethod
    async def _check_connection(
        self, client: httpx.AsyncClient, settings: dict[str, Any]
    ) -> None:
        """Make one cheap authenticated call; raise on failure."""
        ...

    @abstractmethod
    async def _fetch(
        self,
        client: httpx.AsyncClient,
        credentials: dict[str, Any],
        config: FetchConfig,
    ) -> list[ExternalDocument]:
        """List and extract documents, honoring ``config.max_documents``."""
        ...

    def missing_credentials(self, credentials: Any) -> list[str]:
        """Return the required credential fields that are absent or empty."""
        if not isinstance(credentials, dict):
            return list(self.required_credentials)
        return [name for name in self.required_credentials if not credentials.get(name)]

    def validate_credentials(self, credentials: Any) -> bool:
        """Structural check only: every required field is present and non-empty."""
        return not self.missing_credentials(credentials)

    def describe(self) -> dict[str, Any]:
        """Connector metadata for the configuration UI."""
        return {
            "type": self.source_type.value,
            "name": self.display_name,
            "required_credentials": list(self.required_credentials),
            "schema": {
                name: field.to_dict() for name, field in self.config_schema().items()
            },
        }

    def _open_client(
        self, credentials: dict[str, Any], settings: dict[str, Any]
    ) -> httpx.AsyncClient:
        options = self._client_options(credentials, settings)
        return httpx.AsyncClient(
            timeout=self.http_timeout_seconds,
            transport=self._transport,
            **options,
        )

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request, retrying transport errors, and raise on HTTP errors."""
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(httpx.TransportError),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential_jitter(initial=0.5, max=10),
            reraise=True,
        ):
            with attempt:
                response = await client.request(method, url, **kwargs)
        response.raise_for_status()
        return response

    async def test_connection(
        self, credentials: dict[str, Any], config: Optional[dict[str, Any]] = None
    ) -> bool:
        """Check that the source is reachable with the given credentials.

        Auth and network failures are expected outcomes here, so they are
        logged and reported as False rather than raised.
        """
        settings = config or {}
        try:
            async with self._open_client(credentials, settings) as client:
                await self._check_connection(client, settings)
        except Exception as e:
            self._logger.warning("connection_test_failed", error=str(e))
            return False

        self._logger.info("connection_test_succeeded")
        return True

    async def fetch_documents(
        self, credentials: dict[str, Any], config: FetchConfig
    ) -> list[ExternalDocument]:
        """Fetch documents from the source.

        Args:
            credentials: Connector-specific credentials
            config: Fetch configuration including the incremental timestamp

        Returns:
            At most ``config.max_documents`` documents, unique by external id

        Raises:
            ConnectionFailureError: If the source cannot be listed
        """
        self._logger.info(
            "fetch_started",
            max_documents=config.max_documents,
            since=config.incremental_since.isoformat() if config.incremental_since else None,
        )
        try:
            async with self._open_client(credentials, config.settings) as client:
                documents = await self._fetch(client, credentials, config)
        except httpx.HTTPStatusError as e:
            raise ConnectionFailureError(
                self.display_name,
                f"HTTP {e.response.status_code} from {e.request.url.path}",
            ) from e
        except httpx.HTTPError as e:
            raise ConnectionFailureError(self.display_name, str(e) or type(e).__name__) from e

        selected: list[ExternalDocument] = []
        seen: set[str] = set()
        for document in documents:
            if document.external_id in seen or not self._matches_patterns(document, config):
                continue
            seen.add(document.external_id)
            selected.append(document)
            if len(selected) >= config.max_documents:
                break

        self._logger.info(
            "fetch_completed",
            documents_found=len(documents),
            documents_returned=len(selected),
        )
        return selected

    @classmethod
    def _matches_patterns(cls, document: ExternalDocument, config: FetchConfig) -> bool:
        return cls.matches_patterns(str(document.metadata.get("path") or document.title), config)

    @staticmethod
    def matches_patterns(target: str, config: FetchConfig) -> bool:
        """Apply include/exclude globs to a path or title.

        Connectors call this while listing, before the ``max_documents``
        cap, so the cap counts only documents that can be kept.
        """
        if config.include_patterns and not any(
            fnmatch(target, pattern) for pattern in config.include_patterns
        ):
            return False
        return not any(fnmatch(target, pattern) for pattern in config.exclude_patterns)
