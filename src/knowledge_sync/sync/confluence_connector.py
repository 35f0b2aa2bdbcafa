"""Atlassian Confluence sync connector.

This module provides a connector for syncing pages from Atlassian Confluence
via CQL search.
"""

import html
import re
from datetime import timedelta
from typing import Any

import httpx
import structlog

from .base import BaseConnector, parse_timestamp
from .models import ConfigField, ExternalDocument, FetchConfig, SyncSourceType

logger = structlog.get_logger(__name__)

# Confluence caps search page size at 100 for expanded results
SEARCH_PAGE_SIZE = 100

# CQL dates are read in the API user's profile timezone, not UTC
CQL_TIMEZONE_MARGIN = timedelta(days=1)


class ConfluenceConnector(BaseConnector):
    """Sync connector for Atlassian Confluence.

    Syncs pages from one space or the whole site, supporting incremental
    sync via a CQL ``lastModified`` filter.

    Example:
        connector = ConfluenceConnector()
        documents = await connector.fetch_documents(
            {
                "base_url": "https://your-domain.atlassian.net/wiki",
                "username": "user@example.com",
                "api_token": "your-api-token",
            },
            FetchConfig(settings={"space_key": "ENG"}),
        )
    """

    source_type = SyncSourceType.CONFLUENCE
    display_name = "Confluence"
    required_credentials = ("base_url", "username", "api_token")

    def config_schema(self) -> dict[str, ConfigField]:
        return {
            "space_key": ConfigField(
                "string",
                "Confluence space key to sync (optional, syncs all spaces if not provided)",
            ),
            "include_archived": ConfigField("boolean", "Include archived pages", default=False),
        }

    def _client_options(
        self, credentials: dict[str, Any], settings: dict[str, Any]
    ) -> dict[str, Any]:
        return {
            "base_url": str(credentials.get("base_url", "")).rstrip("/"),
            "auth": httpx.BasicAuth(
                credentials.get("username", ""), credentials.get("api_token", "")
            ),
            "headers": {"Accept": "application/json"},
        }

    async def _check_connection(
        self, client: httpx.AsyncClient, settings: dict[str, Any]
    ) -> None:
        await self._request(client, "GET", "/rest/api/space", params={"limit": 1})

    def build_cql(self, config: FetchConfig) -> str:
        """Build the CQL query for a fetch."""
        clauses = ["type=page"]
        space_key = config.get("space_key")
        if space_key:
            clauses.append(f'space="{space_key}"')
        if not config.get("include_archived", False):
            clauses.append("status=current")
        since = config.incremental_since
        if since is not None:
            since -= CQL_TIMEZONE_MARGIN
            clauses.append(f'lastModified >= "{since.strftime("%Y-%m-%d %H:%M")}"')
        return " and ".join(clauses) + " order by lastModified desc"

    async def _fetch(
        self,
        client: httpx.AsyncClient,
        credentials: dict[str, Any],
        config: FetchConfig,
    ) -> list[ExternalDocument]:
        cql = self.build_cql(config)
        base_url = str(credentials.get("base_url", "")).rstrip("/")
        documents: list[ExternalDocument] = []
        start = 0

        while len(documents) < config.max_documents:
            limit = min(SEARCH_PAGE_SIZE, config.max_documents - len(documents))
            response = await self._request(
                client,
                "GET",
                "/rest/api/content/search",
                params={
                    "cql": cql,
                    "start": start,
                    "limit": limit,
                    "expand": "body.storage,version,space,metadata.labels",
                },
            )
            data = response.json()
            pages = data.get("results", [])
            for page in pages:
                try:
                    document = self._page_to_document(page, base_url)
                except (KeyError, TypeError) as e:
                    self._logger.warning(
                        "confluence_page_skipped",
                        page_id=page.get("id"),
                        error=str(e),
                    )
                    continue
                if self._matches_patterns(document, config):
                    documents.append(document)

            if not pages or "next" not in data.get("_links", {}):
                break
            start += len(pages)

        return documents

    def _page_to_document(self, page: dict[str, Any], base_url: str) -> ExternalDocument:
        version = page.get("version") or {}
        space = page.get("space") or {}
        labels = (page.get("metadata") or {}).get("labels", {}).get("results", [])
        webui = (page.get("_links") or {}).get("webui", "")
        storage = (page.get("body") or {}).get("storage", {}).get("value", "")

        return ExternalDocument(
            external_id=str(page["id"]),
            title=page.get("title") or f"Confluence Page {page['id']}",
            content=extract_text(storage),
            content_type="text/plain",
            url=f"{base_url}{webui}" if webui else "",
            last_modified=parse_timestamp(version.get("when")),
            metadata={
                "space_key": space.get("key"),
                "space_name": space.get("name"),
                "version": version.get("number"),
                "author": (version.get("by") or {}).get("displayName"),
            },
            tags=[label["name"] for label in labels if label.get("name")],
        )


def extract_text(storage_html: str) -> str:
    """Extract plain text from Confluence storage format.

    Block-level tags become line breaks so paragraphs survive for chunking.
    """
    if not storage_html:
        return ""

    text = re.sub(r"</?(ac|ri):[^>]*>", "", storage_html)
    text = re.sub(r"<!\[CDATA\[|\]\]>", "", text)
    text = re.sub(r"</(p|h[1-6]|li|tr|div|pre|blockquote)>|<br\s*/?>", "\n", text)
    text = re.sub(r"<[^>]+>", " ", text)
    text = html.unescape(text)

    lines = [re.sub(r"[ \t]+", " ", line).strip() for line in text.splitlines()]
    return "\n\n".join(line for line in lines if line)
