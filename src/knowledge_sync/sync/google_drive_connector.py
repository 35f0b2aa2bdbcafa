"""Google Drive sync connector.

This module provides a connector for syncing Google Docs and plain-text
files from Google Drive.
"""

from typing import Any, Optional

import httpx
import structlog

from .base import BaseConnector, parse_timestamp
from .models import ConfigField, ExternalDocument, FetchConfig, SyncSourceType

logger = structlog.get_logger(__name__)

DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"
GOOGLE_DOC_MIME = "application/vnd.google-apps.document"
FILE_FIELDS = "nextPageToken, files(id, name, mimeType, modifiedTime, webViewLink, size, description, owners(displayName))"

FILE_TYPE_MIME = {
    "document": GOOGLE_DOC_MIME,
    "text": "text/plain",
    "markdown": "text/markdown",
}


class GoogleDriveConnector(BaseConnector):
    """Sync connector for Google Drive.

    Google Docs are exported as plain text; ``text/*`` files are downloaded
    as-is. Other file types are skipped. Incremental sync uses a
    ``modifiedTime`` filter in the Drive query.

    Example:
        connector = GoogleDriveConnector()
        documents = await connector.fetch_documents(
            {"access_token": "ya29.xxx"},
            FetchConfig(settings={"folder_id": "1AbC"}),
        )
    """

    source_type = SyncSourceType.GOOGLE_DRIVE
    display_name = "Google Drive"
    required_credentials = ("access_token",)

    def config_schema(self) -> dict[str, ConfigField]:
        return {
            "folder_id": ConfigField("string", "Folder ID to sync (optional, syncs all files if not provided)"),
            "include_shared_drives": ConfigField("boolean", "Include files from shared drives", default=False),
            "file_types": ConfigField(
                "array",
                "File types to sync (document, text, markdown)",
                default=["document", "text", "markdown"],
            ),
        }

    def _client_options(
        self, credentials: dict[str, Any], settings: dict[str, Any]
    ) -> dict[str, Any]:
        return {
            "base_url": DRIVE_API_BASE,
            "headers": {"Authorization": f"Bearer {credentials.get('access_token', '')}"},
        }

    async def _check_connection(
        self, client: httpx.AsyncClient, settings: dict[str, Any]
    ) -> None:
        await self._request(client, "GET", "/about", params={"fields": "user"})

    def build_query(self, config: FetchConfig) -> str:
        """Build the Drive ``q`` search expression for a fetch."""
        clauses = ["trashed = false"]
        folder_id = config.get("folder_id")
        if folder_id:
            clauses.append(f"'{folder_id}' in parents")

        file_types = config.get("file_types", list(FILE_TYPE_MIME))
        mime_types = [FILE_TYPE_MIME.get(t, t) for t in file_types]
        if mime_types:
            clauses.append("(" + " or ".join(f"mimeType='{m}'" for m in mime_types) + ")")

        since = config.incremental_since
        if since is not None:
            clauses.append(f"modifiedTime > '{since.strftime('%Y-%m-%dT%H:%M:%S')}'")
        return " and ".join(clauses)

    async def _fetch(
        self,
        client: httpx.AsyncClient,
        credentials: dict[str, Any],
        config: FetchConfig,
    ) -> list[ExternalDocument]:
        shared = bool(config.get("include_shared_drives", False))
        params: dict[str, Any] = {
            "q": self.build_query(config),
            "fields": FILE_FIELDS,
            "orderBy": "modifiedTime desc",
            "pageSize": min(100, config.max_documents),
            "supportsAllDrives": str(shared).lower(),
            "includeItemsFromAllDrives": str(shared).lower(),
        }

        files: list[dict[str, Any]] = []
        while len(files) < config.max_documents:
            response = await self._request(client, "GET", "/files", params=params)
            data = response.json()
            files.extend(
                file for file in data.get("files", [])
                if self.matches_patterns(file.get("name") or "Untitled", config)
            )
            token = data.get("nextPageToken")
            if not token:
                break
            params["pageToken"] = token

        self._logger.info("drive_files_found", count=len(files))

        documents: list[ExternalDocument] = []
        for file in files[: config.max_documents]:
            document = await self._file_to_document(client, file)
            if document is not None:
                documents.append(document)
        return documents

    async def _file_to_document(
        self, client: httpx.AsyncClient, file: dict[str, Any]
    ) -> Optional[ExternalDocument]:
        file_id = file["id"]
        mime_type = file.get("mimeType", "")
        try:
            if mime_type == GOOGLE_DOC_MIME:
                response = await self._request(
                    client, "GET", f"/files/{file_id}/export", params={"mimeType": "text/plain"}
                )
                content_type = "text/plain"
            elif mime_type.startswith("text/"):
                response = await self._request(
                    client, "GET", f"/files/{file_id}", params={"alt": "media"}
                )
                content_type = mime_type
            else:
                self._logger.warning("drive_unsupported_file_type", file_id=file_id, mime_type=mime_type)
                return None
        except httpx.HTTPStatusError as e:
            self._logger.warning(
                "drive_file_skipped",
                file_id=file_id,
                status_code=e.response.status_code,
            )
            return None

        owners = file.get("owners") or []
        return ExternalDocument(
            external_id=file_id,
            title=file.get("name") or "Untitled",
            content=response.text,
            content_type=content_type,
            url=file.get("webViewLink") or "",
            last_modified=parse_timestamp(file.get("modifiedTime")),
            metadata={
                "mime_type": mime_type,
                "size": file.get("size"),
                "description": file.get("description"),
                "author": owners[0].get("displayName") if owners else None,
            },
        )
