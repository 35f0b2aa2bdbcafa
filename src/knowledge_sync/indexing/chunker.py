"""Paragraph-aware chunking with tiktoken token counting.

This is the default chunking pipeline used when synced documents are
re-indexed. Paragraphs are packed greedily into chunks of at most
``chunk_size`` tokens; a paragraph larger than that is cut into
overlapping token windows.
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Optional

import structlog
import tiktoken

from knowledge_sync.core.errors import ChunkingError

logger = structlog.get_logger(__name__)

# cl100k_base matches the embedding models used downstream
ENCODING = tiktoken.get_encoding("cl100k_base")

DEFAULT_CHUNK_SIZE = 512
DEFAULT_CHUNK_OVERLAP = 64

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


@dataclass
class ChunkData:
    """A chunk of document content."""

    content: str
    chunk_index: int
    token_count: int


def count_tokens(text: str) -> int:
    """
    Count tokens in text using tiktoken.

    Args:
        text: Text to count tokens for

    Returns:
        Number of tokens
    """
    return len(ENCODING.encode(text))


def _token_windows(text: str, chunk_size: int, chunk_overlap: int) -> list[str]:
    tokens = ENCODING.encode(text)
    step = max(1, chunk_size - chunk_overlap)
    windows = []
    for start in range(0, len(tokens), step):
        window = ENCODING.decode(tokens[start:start + chunk_size]).strip()
        if window:
            windows.append(window)
        if start + chunk_size >= len(tokens):
            break
    return windows


def split_text(
    content: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[ChunkData]:
    """
    Split text into ordered chunks.

    Args:
        content: Document text content
        chunk_size: Maximum chunk size in tokens
        chunk_overlap: Token overlap between windows of an oversized paragraph

    Returns:
        List of ChunkData objects, empty for blank content
    """
    if not content or not content.strip():
        return []

    pieces: list[str] = []
    buffer: list[str] = []
    buffer_tokens = 0

    def flush() -> None:
        nonlocal buffer, buffer_tokens
        if buffer:
            pieces.append("\n\n".join(buffer))
        buffer = []
        buffer_tokens = 0

    for paragraph in _PARAGRAPH_SPLIT.split(content):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        tokens = count_tokens(paragraph)
        if tokens > chunk_size:
            flush()
            pieces.extend(_token_windows(paragraph, chunk_size, chunk_overlap))
            continue
        if buffer and buffer_tokens + tokens > chunk_size:
            flush()
        buffer.append(paragraph)
        buffer_tokens += tokens
    flush()

    return [
        ChunkData(content=piece, chunk_index=index, token_count=count_tokens(piece))
        for index, piece in enumerate(pieces)
    ]


class TokenChunker:
    """Chunking pipeline backed by ``split_text``.

    Tokenization is CPU-bound, so it runs in a worker thread to keep the
    event loop responsive during large syncs.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    ) -> None:
        if chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    async def chunk(self, text: str, document_id: Optional[str] = None) -> list[ChunkData]:
        """Return the ordered chunks for ``text``.

        ``document_id`` is only used to label errors and log events.

        Raises:
            ChunkingError: If tokenization fails
        """
        try:
            chunks = await asyncio.to_thread(
                split_text, text, self.chunk_size, self.chunk_overlap
            )
        except Exception as e:
            raise ChunkingError(document_id, str(e)) from e

        logger.debug(
            "document_chunked",
            document_id=document_id,
            chunks_created=len(chunks),
            chunk_size=self.chunk_size,
        )
        return chunks
