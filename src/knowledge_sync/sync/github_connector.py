"""GitHub sync connector.

This module provides a connector for syncing text files (Markdown, plain
text) from a GitHub repository branch.
"""

import base64
import posixpath
from typing import Any, Optional
from urllib.parse import quote

import httpx
import structlog

from .base import BaseConnector, parse_timestamp
from .models import ConfigField, ExternalDocument, FetchConfig, SyncSourceType

logger = structlog.get_logger(__name__)

GITHUB_API_BASE = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
DEFAULT_FILE_EXTENSIONS = [".md", ".txt", ".mdx"]


class GitHubConnector(BaseConnector):
    """Sync connector for GitHub repositories.

    Files are identified by their repository path, so an edit keeps the
    same external id. The modification time of each file is the date of
    the latest commit touching it on the configured branch.

    Example:
        connector = GitHubConnector()
        documents = await connector.fetch_documents(
            {"access_token": "ghp_xxx"},
            FetchConfig(settings={"owner": "acme", "repo": "handbook", "path": "docs/"}),
        )
    """

    source_type = SyncSourceType.GITHUB
    display_name = "GitHub"
    required_credentials = ("access_token",)

    def config_schema(self) -> dict[str, ConfigField]:
        return {
            "owner": ConfigField("string", "Repository owner (username or organization)", required=True),
            "repo": ConfigField("string", "Repository name", required=True),
            "branch": ConfigField("string", "Branch to sync", default="main"),
            "path": ConfigField("string", 'Path within repository to sync (e.g., "docs/")'),
            "file_extensions": ConfigField(
                "array",
                'File extensions to sync (e.g., [".md", ".txt"])',
                default=DEFAULT_FILE_EXTENSIONS,
            ),
            "api_url": ConfigField("string", "API base URL for GitHub Enterprise", default=GITHUB_API_BASE),
        }

    def _client_options(
        self, credentials: dict[str, Any], settings: dict[str, Any]
    ) -> dict[str, Any]:
        return {
            "base_url": str(settings.get("api_url") or GITHUB_API_BASE).rstrip("/"),
            "headers": {
                "Authorization": f"Bearer {credentials.get('access_token', '')}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            },
        }

    async def _check_connection(
        self, client: httpx.AsyncClient, settings: dict[str, Any]
    ) -> None:
        await self._request(client, "GET", "/user")

    async def _fetch(
        self,
        client: httpx.AsyncClient,
        credentials: dict[str, Any],
        config: FetchConfig,
    ) -> list[ExternalDocument]:
        owner = config.get("owner")
        repo = config.get("repo")
        if not owner or not repo:
            raise ValueError("GitHub sync requires owner and repo configuration")

        branch = config.get("branch", "main")
        prefix = config.get("path", "")
        extensions = tuple(config.get("file_extensions", DEFAULT_FILE_EXTENSIONS))

        response = await self._request(
            client,
            "GET",
            f"/repos/{owner}/{repo}/git/trees/{branch}",
            params={"recursive": "1"},
        )
        tree = response.json()
        if tree.get("truncated"):
            self._logger.warning("github_tree_truncated", repo=f"{owner}/{repo}")

        files = [
            entry for entry in tree.get("tree", [])
            if entry.get("type") == "blob"
            and entry.get("path", "").startswith(prefix)
            and entry.get("path", "").endswith(extensions)
            and self.matches_patterns(entry["path"], config)
        ]
        self._logger.info("github_files_found", repo=f"{owner}/{repo}", count=len(files))

        documents: list[ExternalDocument] = []
        for entry in files[: config.max_documents]:
            document = await self._load_file(client, owner, repo, branch, entry)
            if document is not None:
                documents.append(document)
        return documents

    async def _load_file(
        self,
        client: httpx.AsyncClient,
        owner: str,
        repo: str,
        branch: str,
        entry: dict[str, Any],
    ) -> Optional[ExternalDocument]:
        path = entry["path"]
        try:
            response = await self._request(
                client,
                "GET",
                f"/repos/{owner}/{repo}/contents/{quote(path)}",
                params={"ref": branch},
            )
            data = response.json()
            encoded = data.get("content")
            if not encoded:
                return None
            content = base64.b64decode(encoded).decode("utf-8", errors="replace")

            commits = await self._request(
                client,
                "GET",
                f"/repos/{owner}/{repo}/commits",
                params={"path": path, "sha": branch, "per_page": 1},
            )
            history = commits.json()
            last_commit = history[0]["commit"] if history else {}
            committed_at = parse_timestamp(
                last_commit.get("committer", {}).get("date")
            )
        except httpx.HTTPStatusError as e:
            self._logger.warning(
                "github_file_skipped",
                path=path,
                status_code=e.response.status_code,
            )
            return None

        if committed_at is None:
            # Diff falls back to comparing content
            self._logger.debug("github_commit_date_missing", path=path)

        return ExternalDocument(
            external_id=path,
            title=posixpath.basename(path),
            content=content,
            content_type=_content_type(path),
            url=data.get("html_url") or "",
            last_modified=committed_at,
            metadata={
                "path": path,
                "sha": entry.get("sha"),
                "size": entry.get("size"),
                "repo": f"{owner}/{repo}",
                "branch": branch,
                "author": last_commit.get("author", {}).get("name"),
            },
        )


def _content_type(path: str) -> str:
    if path.endswith((".md", ".mdx")):
        return "text/markdown"
    return "text/plain"
