"""
Unit tests for RAG context assembly.

Tests for:
- Query validation and model availability
- Snippet source names and similarity clamping
- Context formatting
"""

from unittest.mock import MagicMock

import pytest

from localrag.core.exceptions import RagProvisioningError, RagValidationError
from localrag.core.types import CollectionKind, CollectionRef
from localrag.knowledge.metadata import FileInfo, NoteInfo
from localrag.retrieval.context import ContextSnippet, RagContextAssembler, format_context
from localrag.vector.contracts import SearchHit


@pytest.fixture
def embedding_client():
    client = MagicMock()
    client.model = "nomic-embed-text"
    client.ensure_model_available.return_value = True
    client.embed.return_value = [1.0, 0.0, 0.0, 0.0]
    return client


@pytest.fixture
def vector_store():
    return MagicMock()


@pytest.fixture
def assembler(embedding_client, vector_store, metadata):
    return RagContextAssembler(embedding_client, vector_store, metadata)


class TestRetrieve:
    """Tests for RagContextAssembler.retrieve."""

    def test_blank_query_rejected(self, assembler, embedding_client):
        with pytest.raises(RagValidationError):
            assembler.retrieve("   ", ["kb-1"])

        embedding_client.embed.assert_not_called()

    def test_no_collections(self, assembler, embedding_client):
        assert assembler.retrieve("refund policy", []) == []
        embedding_client.embed.assert_not_called()

    def test_model_unavailable(self, assembler, embedding_client):
        embedding_client.ensure_model_available.return_value = False

        with pytest.raises(RagProvisioningError):
            assembler.retrieve("refund policy", ["kb-1"])

    def test_embeds_once_and_searches_all(self, assembler, embedding_client, vector_store, metadata):
        metadata.files["f1"] = FileInfo(id="f1", knowledge_base_id="kb-1", file_name="policy.pdf")
        metadata.notes["n1"] = NoteInfo(id="n1", title="Meeting notes")
        vector_store.search_many.return_value = [
            SearchHit(id="f1_chunk_0", file_id="f1", content="Refunds within 30 days.",
                      distance=0.1, owner_id="kb-1"),
            SearchHit(id="n1_chunk_0", file_id="n1", content="Discussed refunds.",
                      distance=0.4, owner_id="n1", kind=CollectionKind.NOTE),
        ]

        snippets = assembler.retrieve(
            "refund policy", ["kb-1", CollectionRef("n1", CollectionKind.NOTE)], limit=3
        )

        embedding_client.embed.assert_called_once_with("refund policy")
        refs, vector = vector_store.search_many.call_args[0]
        assert refs == [CollectionRef("kb-1"), CollectionRef("n1", CollectionKind.NOTE)]
        assert vector_store.search_many.call_args[1] == {"limit": 3}
        assert [s.source_name for s in snippets] == ["policy.pdf", "Meeting notes"]
        assert snippets[0].similarity == pytest.approx(0.9)

    def test_default_limit(self, assembler, vector_store):
        vector_store.search_many.return_value = []

        assembler.retrieve("anything", ["kb-1"])

        assert vector_store.search_many.call_args[1] == {"limit": 5}

    def test_missing_metadata_falls_back(self, assembler, vector_store):
        vector_store.search_many.return_value = [
            SearchHit(id="x_chunk_0", file_id="x", content="a", distance=0.2, owner_id="kb-1"),
            SearchHit(id="n_chunk_0", file_id="n", content="b", distance=0.3,
                      owner_id="n", kind=CollectionKind.NOTE),
        ]

        snippets = assembler.retrieve("question", ["kb-1"])

        assert [s.source_name for s in snippets] == ["Unknown", "Untitled"]

    def test_metadata_errors_fall_back(self, embedding_client, vector_store):
        broken = MagicMock()
        broken.get_file.side_effect = RuntimeError("database locked")
        vector_store.search_many.return_value = [
            SearchHit(id="x_chunk_0", file_id="x", content="a", distance=0.2, owner_id="kb-1"),
        ]

        snippets = RagContextAssembler(embedding_client, vector_store, broken).retrieve("q", ["kb-1"])

        assert snippets[0].source_name == "Unknown"

    def test_similarity_clamped(self, assembler, vector_store):
        vector_store.search_many.return_value = [
            SearchHit(id="a", file_id="f", content="opposite", distance=1.6, owner_id="kb-1"),
            SearchHit(id="b", file_id="f", content="rounding", distance=-0.00001, owner_id="kb-1"),
        ]

        snippets = assembler.retrieve("q", ["kb-1"])

        assert [s.similarity for s in snippets] == [0.0, 1.0]


class TestFormatContext:
    """Tests for format_context."""

    def make(self, kind, name, content):
        return ContextSnippet(owner_id="o", kind=kind, file_id="f", source_name=name,
                              content=content, similarity=0.9)

    def test_documents_only(self):
        text = format_context([
            self.make(CollectionKind.KNOWLEDGE_BASE, "a.pdf", "alpha"),
            self.make(CollectionKind.KNOWLEDGE_BASE, "b.txt", "beta"),
        ])

        assert text == "[Document 1] (from a.pdf)\nalpha\n\n[Document 2] (from b.txt)\nbeta\n"

    def test_notes_only(self):
        text = format_context([self.make(CollectionKind.NOTE, "Todo", "buy milk")])

        assert text == '[Note 1] (from "Todo")\nbuy milk\n'

    def test_mixed_sections(self):
        text = format_context([
            self.make(CollectionKind.NOTE, "Todo", "buy milk"),
            self.make(CollectionKind.KNOWLEDGE_BASE, "a.pdf", "alpha"),
        ])

        assert text.startswith("Knowledge Base Documents:\n\n[Document 1] (from a.pdf)")
        assert '\n\nNotes:\n\n[Note 1] (from "Todo")\nbuy milk\n' in text

    def test_empty(self):
        assert format_context([]) == ""
