"""
Knowledge lifecycle - deleting knowledge bases, files and notes.

Vector data is removed before the metadata record that owns it, so a failed
vector drop leaves the record in place for a retry instead of orphaning a
collection. Deletions go through the same serial queue as the embedding
pipelines, so a delete never interleaves with an in-flight job for the same
owner.
"""

import logging
from typing import Optional

from ..core.exceptions import RagStorageError, RagValidationError
from ..core.logging import CorrelationContext, log_with_context
from ..core.types import CollectionKind, CollectionRef
from ..pipeline.queue import SerialJobQueue
from ..storage.file_store import DocumentStore
from ..vector.store import VectorStoreManager
from .metadata import MetadataRepository


logger = logging.getLogger(__name__)


class KnowledgeService:
    """
    Ordered deletion of knowledge bases, files and notes.

    Example:
        >>> service = KnowledgeService(vectors, documents, metadata, queue=queue)
        >>> service.delete_knowledge_base("kb-1")
    """

    def __init__(
        self,
        vector_store: VectorStoreManager,
        document_store: DocumentStore,
        metadata: MetadataRepository,
        queue: Optional[SerialJobQueue] = None,
    ):
        self.vector_store = vector_store
        self.document_store = document_store
        self.metadata = metadata
        self.queue = queue or SerialJobQueue()

    def delete_knowledge_base(self, kb_id: str) -> None:
        """
        Drop the knowledge base's collection, then its record, then its files.

        Raises:
            RagStorageError: If the collection can't be dropped (record kept)
            RagValidationError: If no knowledge-base record exists
        """
        self.queue.run(self._delete_knowledge_base, kb_id)

    def delete_file(self, kb_id: str, file_id: str, storage_path: Optional[str] = None) -> None:
        """
        Delete a file's vectors, its record, then the stored file.

        ``storage_path`` defaults to the path in the file record.
        """
        self.queue.run(self._delete_file, kb_id, file_id, storage_path)

    def delete_note(self, note_id: str) -> None:
        """Drop the note's collection, then its record."""
        self.queue.run(self._delete_note, note_id)

    def _delete_knowledge_base(self, kb_id: str) -> None:
        ref = CollectionRef(kb_id, CollectionKind.KNOWLEDGE_BASE)
        with CorrelationContext(owner_id=kb_id):
            if self.vector_store.collection_exists(ref):
                self.vector_store.drop_collection(ref)
                log_with_context(logger, logging.INFO, f"Dropped collection {ref.table_name}")

            if not self.metadata.delete_knowledge_base(kb_id):
                raise RagValidationError(f"Knowledge base not found: {kb_id}")

            try:
                self.document_store.delete_knowledge_base_directory(kb_id)
            except RagStorageError as e:
                logger.warning(f"Failed to remove documents of {kb_id}: {e}")

            log_with_context(logger, logging.INFO, f"Deleted knowledge base {kb_id}")

    def _delete_file(self, kb_id: str, file_id: str, storage_path: Optional[str]) -> None:
        with CorrelationContext(owner_id=kb_id, file_id=file_id):
            if storage_path is None:
                info = self.metadata.get_file(file_id)
                storage_path = info.storage_path if info else None

            self.vector_store.delete_by_file(kb_id, file_id)

            if not self.metadata.delete_file(file_id):
                raise RagValidationError(f"File not found: {file_id}")

            if storage_path:
                try:
                    self.document_store.delete(storage_path)
                except RagStorageError as e:
                    logger.warning(f"Failed to remove stored file {storage_path}: {e}")

            log_with_context(logger, logging.INFO, f"Deleted file {file_id}")

    def _delete_note(self, note_id: str) -> None:
        ref = CollectionRef(note_id, CollectionKind.NOTE)
        with CorrelationContext(owner_id=note_id):
            self.vector_store.drop_collection(ref)

            if not self.metadata.delete_note(note_id):
                raise RagValidationError(f"Note not found: {note_id}")

            log_with_context(logger, logging.INFO, f"Deleted note {note_id}")
