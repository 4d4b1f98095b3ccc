"""
Unit tests for the text chunker.

Tests for:
- Window count and overlap
- Coverage without gaps
- Blank-window filtering
- Parameter validation
"""

import pytest

from localrag.core.exceptions import RagValidationError
from localrag.retrieval.chunker import Chunker, ChunkingPolicy, chunk_text, split_windows


class TestChunkText:
    """Tests for chunk_text."""

    def test_three_thousand_chars_gives_four_chunks(self):
        text = "".join(chr(ord("a") + i % 26) for i in range(3000))

        chunks = split_windows(text, max_size=1000, overlap=200)

        assert len(chunks) == 4
        assert [(c.start_offset, c.end_offset) for c in chunks] == [
            (0, 1000), (800, 1800), (1600, 2600), (2400, 3000)
        ]
        assert chunks[1].content[:200] == chunks[0].content[-200:]

    def test_short_text_single_chunk(self):
        assert chunk_text("Short note.", max_size=1000, overlap=200) == ["Short note."]

    def test_exact_size_single_chunk(self):
        assert len(chunk_text("x" * 1000, max_size=1000, overlap=200)) == 1

    def test_empty_text(self):
        assert chunk_text("") == []

    def test_whitespace_only_text(self):
        assert chunk_text("   \n\n   ") == []

    def test_chunks_are_not_trimmed(self):
        text = "  leading and trailing  "

        assert chunk_text(text, max_size=100, overlap=0) == [text]

    def test_blank_windows_dropped(self):
        text = "a" * 10 + " " * 20 + "b" * 10

        chunks = split_windows(text, max_size=10, overlap=0)

        assert [c.content for c in chunks] == ["a" * 10, "b" * 10]
        assert [c.index for c in chunks] == [0, 1]

    def test_full_coverage_without_gaps(self):
        text = "The quick brown fox jumps over the lazy dog. " * 70

        chunks = split_windows(text, max_size=300, overlap=50)

        assert chunks[0].start_offset == 0
        assert chunks[-1].end_offset == len(text)
        for previous, current in zip(chunks, chunks[1:]):
            assert current.start_offset < previous.end_offset
        assert all(len(c.content) <= 300 for c in chunks)

    def test_deterministic(self):
        text = "lorem ipsum " * 400

        assert chunk_text(text, 500, 100) == chunk_text(text, 500, 100)

    def test_overlap_not_smaller_than_size(self, caplog):
        chunks = chunk_text("abcdefghij", max_size=4, overlap=4)

        assert chunks == ["abcd", "efgh", "ij"]
        assert "non-overlapping" in caplog.text

    @pytest.mark.parametrize("max_size, overlap", [(0, 0), (-5, 0), (100, -1)])
    def test_invalid_parameters(self, max_size, overlap):
        with pytest.raises(RagValidationError):
            chunk_text("some text", max_size=max_size, overlap=overlap)


class TestChunker:
    """Tests for the Chunker class."""

    def test_default_policy(self):
        chunker = Chunker()

        assert chunker.policy == ChunkingPolicy(max_size=1000, overlap=200)
        assert chunker.policy.step == 800

    def test_chunk_with_offsets(self):
        chunker = Chunker(ChunkingPolicy(max_size=5, overlap=2))

        chunks = chunker.chunk_with_offsets("0123456789")

        assert [c.content for c in chunks] == ["01234", "34567", "6789"]
        assert chunker.chunk("0123456789") == ["01234", "34567", "6789"]
