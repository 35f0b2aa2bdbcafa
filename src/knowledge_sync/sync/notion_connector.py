"""Notion sync connector.

This module provides a connector for syncing pages from Notion workspaces.
"""

from typing import Any, Optional

import httpx
import structlog

from .base import BaseConnector, parse_timestamp
from .models import ConfigField, ExternalDocument, FetchConfig, SyncSourceType

logger = structlog.get_logger(__name__)

NOTION_API_VERSION = "2022-06-28"
NOTION_API_BASE = "https://api.notion.com/v1"

# Maximum pagination iterations to prevent infinite loops
MAX_PAGINATION_PAGES = 1000
# Nested blocks deeper than this are not expanded
MAX_BLOCK_DEPTH = 3


class NotionConnector(BaseConnector):
    """Sync connector for Notion workspaces.

    Syncs pages from one database, or every page shared with the
    integration when no database is configured. Database queries filter on
    ``last_edited_time`` server-side; workspace search cannot, so it returns
    the most recently edited pages and leaves filtering to reconciliation.

    Example:
        connector = NotionConnector()
        documents = await connector.fetch_documents(
            {"integration_token": "secret_xxx"},
            FetchConfig(settings={"database_id": "db1"}),
        )
    """

    source_type = SyncSourceType.NOTION
    display_name = "Notion"
    required_credentials = ("integration_token",)

    def config_schema(self) -> dict[str, ConfigField]:
        return {
            "database_id": ConfigField(
                "string",
                "Notion database ID to sync (optional, syncs all accessible pages if not provided)",
            ),
            "include_archived": ConfigField("boolean", "Include archived pages", default=False),
        }

    def _client_options(
        self, credentials: dict[str, Any], settings: dict[str, Any]
    ) -> dict[str, Any]:
        return {
            "base_url": NOTION_API_BASE,
            "headers": {
                "Authorization": f"Bearer {credentials.get('integration_token', '')}",
                "Notion-Version": NOTION_API_VERSION,
                "Content-Type": "application/json",
            },
        }

    async def _check_connection(
        self, client: httpx.AsyncClient, settings: dict[str, Any]
    ) -> None:
        await self._request(client, "GET", "/users/me")

    def _query_payload(self, config: FetchConfig, page_size: int) -> tuple[str, dict[str, Any]]:
        sort = {"timestamp": "last_edited_time", "direction": "descending"}
        database_id = config.get("database_id")
        if not database_id:
            return "/search", {
                "filter": {"property": "object", "value": "page"},
                "sort": sort,
                "page_size": page_size,
            }

        payload: dict[str, Any] = {"sorts": [sort], "page_size": page_size}
        since = config.incremental_since
        if since is not None:
            payload["filter"] = {
                "timestamp": "last_edited_time",
                "last_edited_time": {"after": since.isoformat()},
            }
        return f"/databases/{database_id}/query", payload

    async def _fetch(
        self,
        client: httpx.AsyncClient,
        credentials: dict[str, Any],
        config: FetchConfig,
    ) -> list[ExternalDocument]:
        include_archived = bool(config.get("include_archived", False))
        path, payload = self._query_payload(config, min(100, config.max_documents))

        pages: list[dict[str, Any]] = []
        for _ in range(MAX_PAGINATION_PAGES):
            response = await self._request(client, "POST", path, json=payload)
            data = response.json()
            for page in data.get("results", []):
                if page.get("archived") and not include_archived:
                    continue
                if not self.matches_patterns(page_title(page), config):
                    continue
                pages.append(page)
            if len(pages) >= config.max_documents or not data.get("has_more"):
                break
            payload["start_cursor"] = data.get("next_cursor")

        self._logger.info("notion_pages_found", count=len(pages))

        documents: list[ExternalDocument] = []
        for page in pages[: config.max_documents]:
            document = await self._page_to_document(client, page)
            if document is not None:
                documents.append(document)
        return documents

    async def _page_to_document(
        self, client: httpx.AsyncClient, page: dict[str, Any]
    ) -> Optional[ExternalDocument]:
        page_id = page.get("id", "")
        try:
            blocks = await self._fetch_blocks(client, page_id)
        except httpx.HTTPStatusError as e:
            self._logger.warning(
                "notion_page_skipped",
                page_id=page_id,
                status_code=e.response.status_code,
            )
            return None

        return ExternalDocument(
            external_id=page_id,
            title=page_title(page),
            content=blocks_to_text(blocks),
            content_type="text/markdown",
            url=page.get("url") or "",
            last_modified=parse_timestamp(page.get("last_edited_time")),
            metadata={
                "created_time": page.get("created_time"),
                "last_edited_by": (page.get("last_edited_by") or {}).get("id"),
                "parent_type": (page.get("parent") or {}).get("type"),
                "archived": page.get("archived", False),
            },
        )

    async def _fetch_blocks(
        self,
        client: httpx.AsyncClient,
        block_id: str,
        depth: int = 0,
    ) -> list[dict[str, Any]]:
        """Fetch the block tree under ``block_id``, children attached in place."""
        blocks: list[dict[str, Any]] = []
        params: dict[str, Any] = {"page_size": 100}
        for _ in range(MAX_PAGINATION_PAGES):
            response = await self._request(
                client, "GET", f"/blocks/{block_id}/children", params=params
            )
            data = response.json()
            blocks.extend(data.get("results", []))
            if not data.get("has_more"):
                break
            params["start_cursor"] = data.get("next_cursor")

        if depth < MAX_BLOCK_DEPTH:
            for block in blocks:
                if block.get("has_children"):
                    block["children"] = await self._fetch_blocks(
                        client, block["id"], depth + 1
                    )
        return blocks


def extract_title(page: dict[str, Any]) -> str:
    """Extract the title property of a Notion page."""
    for prop in (page.get("properties") or {}).values():
        if prop.get("type") == "title":
            return "".join(t.get("plain_text", "") for t in prop.get("title", []))
    return ""


def page_title(page: dict[str, Any]) -> str:
    return extract_title(page) or f"Notion Page {page.get('id', '')}"


def blocks_to_text(blocks: list[dict[str, Any]], depth: int = 0) -> str:
    """Convert a Notion block tree to Markdown-ish plain text."""
    lines = []
    indent = "  " * depth

    for block in blocks:
        block_type = block.get("type", "")
        data = block.get(block_type) or {}
        text = "".join(t.get("plain_text", "") for t in data.get("rich_text", []))

        if block_type in ("heading_1", "heading_2", "heading_3"):
            lines.append(f"{indent}{'#' * int(block_type[-1])} {text}")
        elif block_type == "bulleted_list_item":
            lines.append(f"{indent}- {text}")
        elif block_type == "numbered_list_item":
            lines.append(f"{indent}1. {text}")
        elif block_type == "to_do":
            checkbox = "[x]" if data.get("checked") else "[ ]"
            lines.append(f"{indent}- {checkbox} {text}")
        elif block_type == "code":
            lines.append(f"{indent}```{data.get('language', '')}\n{indent}{text}\n{indent}```")
        elif block_type == "quote":
            lines.append(f"{indent}> {text}")
        elif block_type == "equation":
            lines.append(f"{indent}{data.get('expression', '')}")
        elif block_type == "divider":
            lines.append(f"{indent}---")
        elif text:
            lines.append(f"{indent}{text}")

        children = block.get("children")
        if children:
            nested = blocks_to_text(children, depth + 1)
            if nested:
                lines.append(nested)

    return "\n\n".join(lines)
