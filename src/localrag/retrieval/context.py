"""
RAG context assembly.

Embeds a query once, searches a mix of knowledge-base and note collections,
and turns the merged hits into display-ready snippets for chat context.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from ..core.exceptions import RagProvisioningError, RagValidationError
from ..core.types import CollectionKind, CollectionRef
from ..embedding.client import EmbeddingClient
from ..knowledge.metadata import MetadataRepository, NullMetadataRepository
from ..vector.contracts import SearchHit
from ..vector.store import VectorStoreManager


logger = logging.getLogger(__name__)


UNKNOWN_FILE_NAME = "Unknown"
UNTITLED_NOTE = "Untitled"


@dataclass
class ContextSnippet:
    """
    One retrieved passage ready for display or prompting.

    Attributes:
        owner_id: Knowledge base or note the passage came from
        kind: Collection kind
        file_id: Source file id (the note id for notes)
        source_name: File name or note title
        content: Passage text
        similarity: 1 - cosine distance, clamped to [0, 1]
    """
    owner_id: str
    kind: CollectionKind
    file_id: str
    source_name: str
    content: str
    similarity: float


class RagContextAssembler:
    """
    Retrieves ranked context snippets for a chat query.

    Example:
        >>> assembler = RagContextAssembler(embedder, vectors, metadata)
        >>> snippets = assembler.retrieve("what is the refund policy?", ["kb-1"])
        >>> print(format_context(snippets))
    """

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        vector_store: VectorStoreManager,
        metadata: Optional[MetadataRepository] = None,
        default_limit: int = 5,
    ):
        self.embedding_client = embedding_client
        self.vector_store = vector_store
        self.metadata = metadata or NullMetadataRepository()
        self.default_limit = default_limit

    def retrieve(
        self,
        query: str,
        collections: Iterable[Union[str, CollectionRef]],
        limit: Optional[int] = None,
    ) -> List[ContextSnippet]:
        """
        Search the given collections for ``query``.

        Args:
            query: User question
            collections: Owner ids (knowledge bases) or CollectionRefs
            limit: Maximum snippets (default 5)

        Returns:
            Snippets ordered by descending similarity

        Raises:
            RagValidationError: If the query is blank
            RagProvisioningError: If the embedding model is unavailable
        """
        if not query or not query.strip():
            raise RagValidationError("Query cannot be empty")

        limit = self.default_limit if limit is None else limit
        refs = [CollectionRef.coerce(c) for c in collections]
        if not refs or limit <= 0:
            return []

        if not self.embedding_client.ensure_model_available():
            raise RagProvisioningError(
                f"Embedding model {self.embedding_client.model} is not available"
            )

        query_vector = self.embedding_client.embed(query)
        hits = self.vector_store.search_many(refs, query_vector, limit=limit)

        snippets = [self._to_snippet(hit) for hit in hits]
        logger.info(f"Retrieved {len(snippets)} snippets from {len(refs)} collections")
        return snippets

    def _to_snippet(self, hit: SearchHit) -> ContextSnippet:
        return ContextSnippet(
            owner_id=hit.owner_id,
            kind=hit.kind,
            file_id=hit.file_id,
            source_name=self._source_name(hit),
            content=hit.content,
            similarity=min(max(hit.similarity, 0.0), 1.0),
        )

    def _source_name(self, hit: SearchHit) -> str:
        try:
            if hit.kind is CollectionKind.NOTE:
                note = self.metadata.get_note(hit.owner_id)
                return (note.title if note else None) or UNTITLED_NOTE
            info = self.metadata.get_file(hit.file_id)
            return (info.file_name if info else None) or UNKNOWN_FILE_NAME
        except Exception as e:
            logger.warning(f"Metadata lookup for {hit.file_id} failed: {e}")
            return UNTITLED_NOTE if hit.kind is CollectionKind.NOTE else UNKNOWN_FILE_NAME


def format_context(snippets: List[ContextSnippet]) -> str:
    """
    Render snippets as prompt context.

    Documents and notes are numbered separately; when both are present they
    are placed under their own headings.
    """
    documents = [s for s in snippets if s.kind is CollectionKind.KNOWLEDGE_BASE]
    notes = [s for s in snippets if s.kind is CollectionKind.NOTE]

    document_text = "\n".join(
        f"[Document {i}] (from {s.source_name})\n{s.content}\n"
        for i, s in enumerate(documents, start=1)
    )
    note_text = "\n".join(
        f'[Note {i}] (from "{s.source_name}")\n{s.content}\n'
        for i, s in enumerate(notes, start=1)
    )

    if document_text and note_text:
        return f"Knowledge Base Documents:\n\n{document_text}\n\nNotes:\n\n{note_text}"
    return document_text or note_text
