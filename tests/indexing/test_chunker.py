"""Tests for the token chunker."""

from unittest.mock import patch

import pytest

from knowledge_sync.core.errors import ChunkingError
from knowledge_sync.indexing import TokenChunker, count_tokens, split_text


class TestSplitText:
    """Tests for split_text."""

    def test_blank_content(self):
        assert split_text("") == []
        assert split_text("   \n\n  ") == []

    def test_small_document_single_chunk(self):
        chunks = split_text("First paragraph.\n\nSecond paragraph.")

        assert len(chunks) == 1
        assert chunks[0].chunk_index == 0
        assert chunks[0].content == "First paragraph.\n\nSecond paragraph."
        assert chunks[0].token_count == count_tokens(chunks[0].content)

    def test_paragraphs_packed_up_to_chunk_size(self):
        """Test paragraphs are never split when they fit."""
        paragraphs = [f"Paragraph number {i} talks about topic {i}." for i in range(20)]

        chunks = split_text("\n\n".join(paragraphs), chunk_size=30, chunk_overlap=5)

        assert len(chunks) > 1
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
        assert all(c.token_count <= 30 for c in chunks)
        rejoined = "\n\n".join(c.content for c in chunks)
        assert rejoined == "\n\n".join(paragraphs)

    def test_oversized_paragraph_windowed(self):
        """Test a paragraph larger than chunk_size is cut into token windows."""
        paragraph = " ".join(f"word{i}" for i in range(200))

        chunks = split_text(paragraph, chunk_size=50, chunk_overlap=10)

        assert len(chunks) > 1
        assert chunks[0].content.startswith("word0 word1")
        assert chunks[-1].content.endswith("word199")


class TestTokenChunker:
    """Tests for the async chunking pipeline."""

    def test_overlap_must_be_smaller(self):
        with pytest.raises(ValueError):
            TokenChunker(chunk_size=100, chunk_overlap=100)

    @pytest.mark.asyncio
    async def test_chunk(self):
        chunker = TokenChunker(chunk_size=64, chunk_overlap=8)

        chunks = await chunker.chunk("Hello world.\n\nSecond block.")

        assert len(chunks) == 1
        assert chunks[0].content.startswith("Hello world.")

    @pytest.mark.asyncio
    async def test_chunk_failure_wrapped(self):
        """Test tokenizer failures surface as ChunkingError."""
        chunker = TokenChunker()

        with patch(
            "knowledge_sync.indexing.chunker.split_text",
            side_effect=RuntimeError("bad encoding"),
        ):
            with pytest.raises(ChunkingError, match="bad encoding"):
                await chunker.chunk("text")

    @pytest.mark.asyncio
    async def test_chunk_failure_labelled_with_document_id(self):
        """Test the failing document's id is carried in the error details."""
        chunker = TokenChunker()

        with patch(
            "knowledge_sync.indexing.chunker.split_text",
            side_effect=RuntimeError("bad encoding"),
        ):
            with pytest.raises(ChunkingError) as labelled:
                await chunker.chunk("text", document_id="doc-1")
            with pytest.raises(ChunkingError) as unlabelled:
                await chunker.chunk("text")

        assert labelled.value.details == {"document_id": "doc-1"}
        assert unlabelled.value.details == {}
