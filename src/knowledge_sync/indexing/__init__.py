"""Chunking pipeline for synced documents."""

from .chunker import ChunkData, TokenChunker, count_tokens, split_text

__all__ = ["ChunkData", "TokenChunker", "count_tokens", "split_text"]
