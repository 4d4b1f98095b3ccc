"""
Note embedding pipeline.

Re-embedding a note always replaces its collection: the old ``note_{id}``
table is dropped and a fresh one is created before the new records are
inserted. If anything fails after the table was created, the partially
filled table is dropped again.
"""

import logging
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Optional

from ..core.exceptions import RagProvisioningError, RagValidationError
from ..core.logging import CorrelationContext, log_with_context
from ..core.types import CollectionKind, CollectionRef, EmbeddingProgress
from ..embedding.client import EmbeddingClient
from ..knowledge.metadata import MetadataRepository, NullMetadataRepository
from ..retrieval.chunker import Chunker
from ..vector.contracts import VectorRecord, record_id
from ..vector.store import VectorStoreManager
from .progress import (
    Chunking,
    Completed,
    Embedding,
    Failed,
    ProgressCallback,
    Storing,
    Validating,
    scale_percent,
)
from .queue import SerialJobQueue


logger = logging.getLogger(__name__)


@dataclass
class NoteEmbeddingResult:
    note_id: str
    chunk_count: int
    text_length: int


class NoteEmbeddingPipeline:
    """
    Embeds note content into a per-note collection.

    Example:
        >>> pipeline = NoteEmbeddingPipeline(vectors, embedder, metadata, queue=queue)
        >>> pipeline.embed_note("note-1", content="Meeting notes...").chunk_count
        1
    """

    def __init__(
        self,
        vector_store: VectorStoreManager,
        embedding_client: EmbeddingClient,
        metadata: Optional[MetadataRepository] = None,
        chunker: Optional[Chunker] = None,
        queue: Optional[SerialJobQueue] = None,
    ):
        self.vector_store = vector_store
        self.embedding_client = embedding_client
        self.metadata = metadata or NullMetadataRepository()
        self.chunker = chunker or Chunker()
        self.queue = queue or SerialJobQueue()

    def submit(
        self,
        note_id: str,
        content: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Future:
        """Queue a note embedding; the Future resolves to a NoteEmbeddingResult."""
        return self.queue.submit(self.process, note_id, content, on_progress)

    def embed_note(
        self,
        note_id: str,
        content: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> NoteEmbeddingResult:
        """Queue a note embedding and wait for it."""
        return self.submit(note_id, content, on_progress).result()

    def process(
        self,
        note_id: str,
        content: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> NoteEmbeddingResult:
        """
        Embed a note in the calling thread.

        Args:
            note_id: Note id
            content: Note text; loaded from the metadata repository when None

        Raises:
            RagValidationError: Note missing or empty
            RagProvisioningError: Embedding model unavailable
            RagUpstreamError: Embedding failed after retries
            RagStorageError: Vector store failure
        """
        ref = CollectionRef(note_id, CollectionKind.NOTE)
        created_table = False

        def emit(event) -> None:
            if on_progress is not None:
                on_progress(event)

        with CorrelationContext(owner_id=note_id):
            try:
                emit(Validating(note_id, 0, "Loading note"))
                text = self._load_content(note_id, content)

                emit(Chunking(note_id, 10, "Splitting text into chunks"))
                chunks = self.chunker.chunk(text)
                if not chunks:
                    raise RagValidationError(f"No text chunks generated for note {note_id}")

                if not self.embedding_client.ensure_model_available():
                    raise RagProvisioningError(
                        f"Embedding model {self.embedding_client.model} is not available"
                    )

                def on_embedding_progress(progress: EmbeddingProgress) -> None:
                    emit(Embedding(
                        note_id,
                        scale_percent(progress.processed / progress.total, 10, 80),
                        f"Embedding chunk {progress.processed}/{progress.total}",
                        processed=progress.processed,
                        total=progress.total,
                    ))

                log_with_context(
                    logger, logging.INFO,
                    f"Generating embeddings for {len(chunks)} note chunks",
                    stage="embedding",
                )
                vectors = self.embedding_client.embed_batch(chunks, on_progress=on_embedding_progress)

                emit(Storing(note_id, 80, "Creating vector table"))
                if self.vector_store.drop_collection(ref):
                    logger.info(f"Replaced existing collection of note {note_id}")
                self.vector_store.create_collection(ref)
                created_table = True

                records = [
                    VectorRecord(id=record_id(note_id, i), file_id=note_id, content=chunk, embedding=vector)
                    for i, (chunk, vector) in enumerate(zip(chunks, vectors))
                ]
                self.vector_store.insert(ref, records)

            except Exception as e:
                log_with_context(logger, logging.ERROR, f"Embedding note {note_id} failed: {e}")
                if created_table:
                    self._drop_partial(ref)
                emit(Failed(note_id, 0, "Note embedding failed", reason=str(e)))
                raise

            result = NoteEmbeddingResult(
                note_id=note_id,
                chunk_count=len(records),
                text_length=len(text),
            )
            emit(Completed(note_id, 100, "Note embedding completed", result=result))
            log_with_context(
                logger, logging.INFO,
                f"Embedded note {note_id}: {result.chunk_count} chunks",
                stage="completed",
            )
            return result

    def _load_content(self, note_id: str, content: Optional[str]) -> str:
        if content is None:
            note = self.metadata.get_note(note_id)
            if note is None:
                raise RagValidationError(f"Note not found: {note_id}")
            content = note.content

        if not content or not content.strip():
            raise RagValidationError(f"Note {note_id} content is empty")
        return content

    def _drop_partial(self, ref: CollectionRef) -> None:
        try:
            self.vector_store.drop_collection(ref)
            logger.info(f"Dropped partially populated collection {ref.table_name}")
        except Exception as e:
            logger.error(f"Cleanup of {ref.table_name} failed: {e}")
