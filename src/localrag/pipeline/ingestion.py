"""
Document ingestion pipeline.

Turns an uploaded document into stored vectors in a knowledge-base
collection:

    validating -> saving -> extracting -> chunking -> embedding -> storing
    -> completed

Any failure moves the job to ``failed`` after rolling back whatever was
persisted: inserted vectors first, then the saved file. A job is either fully
embedded or leaves nothing behind.

Jobs run through a SerialJobQueue, so no two jobs embed at the same time.
"""

import logging
import uuid
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from ..core.exceptions import RagExtractionError, RagProvisioningError, RagValidationError
from ..core.logging import CorrelationContext, log_with_context
from ..core.types import CollectionKind, EmbeddingProgress, ModelProgress
from ..embedding.client import EmbeddingClient
from ..extraction.text_extractors import TextExtractor
from ..retrieval.chunker import Chunker
from ..storage.file_store import DocumentStore
from ..vector.contracts import VectorRecord, record_id
from ..vector.store import VectorStoreManager
from .progress import (
    Chunking,
    Completed,
    Embedding,
    Extracting,
    Failed,
    IngestionJob,
    IngestionStage,
    ProgressCallback,
    ProgressEvent,
    Saving,
    Storing,
    Validating,
    scale_percent,
)
from .queue import SerialJobQueue


logger = logging.getLogger(__name__)


DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024
DEFAULT_ALLOWED_EXTENSIONS = (".txt", ".md", ".json", ".csv", ".html", ".pdf", ".docx")


@dataclass
class IngestionResult:
    """
    Attributes:
        file_id: Ingested file id
        storage_path: Saved file, relative to the data directory
        extracted_text: Full extracted text
        chunk_count: Number of vector records stored
        file_size: Size of the uploaded document in bytes
    """
    file_id: str
    storage_path: str
    extracted_text: str
    chunk_count: int
    file_size: int


@dataclass
class BatchItemResult:
    file_name: str
    result: Optional[IngestionResult] = None
    error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.error is None


Finalizer = Callable[[IngestionResult], None]


class DocumentIngestionPipeline:
    """
    Staged, rollback-safe document ingestion.

    Example:
        >>> pipeline = DocumentIngestionPipeline(store, vectors, embedder, queue=queue)
        >>> result = pipeline.ingest(data, "report.pdf", kb_id="kb-1")
        >>> result.chunk_count
        12
    """

    def __init__(
        self,
        document_store: DocumentStore,
        vector_store: VectorStoreManager,
        embedding_client: EmbeddingClient,
        chunker: Optional[Chunker] = None,
        extractor: Optional[TextExtractor] = None,
        queue: Optional[SerialJobQueue] = None,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        allowed_extensions: Sequence[str] = DEFAULT_ALLOWED_EXTENSIONS,
        embed_concurrency: int = 1,
    ):
        """
        Args:
            document_store: Where uploaded files are saved
            vector_store: Knowledge-base collections
            embedding_client: Embeds chunks and ensures the model is installed
            chunker: Chunking policy holder (1000/200 by default)
            extractor: Text extraction
            queue: Serial queue shared with other embedding pipelines
            max_file_size: Upload size limit in bytes
            allowed_extensions: Lower-case extensions accepted for upload
            embed_concurrency: Batch embedding concurrency (keep at 1)
        """
        self.document_store = document_store
        self.vector_store = vector_store
        self.embedding_client = embedding_client
        self.chunker = chunker or Chunker()
        self.extractor = extractor or TextExtractor()
        self.queue = queue or SerialJobQueue()
        self.max_file_size = max_file_size
        self.allowed_extensions = tuple(ext.lower() for ext in allowed_extensions)
        self.embed_concurrency = embed_concurrency

    def submit(
        self,
        data: bytes,
        file_name: str,
        kb_id: str,
        file_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        finalizer: Optional[Finalizer] = None,
    ) -> Future:
        """Queue an ingestion; the Future resolves to an IngestionResult."""
        file_id = file_id or str(uuid.uuid4())
        return self.queue.submit(
            self.process, data, file_name, kb_id, file_id, on_progress, finalizer
        )

    def ingest(
        self,
        data: bytes,
        file_name: str,
        kb_id: str,
        file_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        finalizer: Optional[Finalizer] = None,
    ) -> IngestionResult:
        """Queue an ingestion and wait for it."""
        return self.submit(data, file_name, kb_id, file_id, on_progress, finalizer).result()

    def process_batch(
        self,
        files: Sequence[Union[Path, Tuple[str, bytes]]],
        kb_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[BatchItemResult]:
        """
        Ingest several files in order; one failure doesn't stop the rest.

        Args:
            files: Paths, or ``(file_name, data)`` pairs
            kb_id: Target knowledge base
        """
        futures = []
        for item in files:
            if isinstance(item, tuple):
                file_name, data = item
            else:
                path = Path(item)
                file_name, data = path.name, path.read_bytes()
            futures.append((file_name, self.submit(data, file_name, kb_id, on_progress=on_progress)))

        results = []
        for file_name, future in futures:
            try:
                results.append(BatchItemResult(file_name, result=future.result()))
            except Exception as e:
                results.append(BatchItemResult(file_name, error=e))

        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Batch ingestion into {kb_id}: {succeeded}/{len(results)} succeeded")
        return results

    def process(
        self,
        data: bytes,
        file_name: str,
        kb_id: str,
        file_id: str,
        on_progress: Optional[ProgressCallback] = None,
        finalizer: Optional[Finalizer] = None,
    ) -> IngestionResult:
        """
        Run all stages in the calling thread.

        Use ``submit``/``ingest`` to go through the serial queue.

        Raises:
            RagValidationError: Rejected upload (nothing persisted)
            RagExtractionError: No text could be extracted
            RagProvisioningError: Embedding model unavailable
            RagUpstreamError: Embedding failed after retries
            RagStorageError: Disk or vector store failure
        """
        job = IngestionJob(file_id=file_id, kb_id=kb_id)

        def emit(event: ProgressEvent) -> None:
            job.stage = event.stage
            job.percent = event.percent
            if on_progress is not None:
                on_progress(event)

        with CorrelationContext(file_id=file_id, owner_id=kb_id):
            try:
                result = self._run_stages(job, data, file_name, emit)
                if finalizer is not None:
                    finalizer(result)
            except Exception as e:
                log_with_context(
                    logger, logging.ERROR,
                    f"Ingestion of {file_name} failed at {job.stage.value}: {e}",
                    stage=job.stage.value,
                )
                self._rollback(job)
                emit(Failed(file_id, 0, "File processing failed", reason=str(e)))
                raise

            emit(Completed(file_id, 100, "File processing completed", result=result))
            log_with_context(
                logger, logging.INFO,
                f"Ingested {file_name}: {result.chunk_count} chunks",
                stage=IngestionStage.COMPLETED.value,
            )
            return result

    def _run_stages(
        self,
        job: IngestionJob,
        data: bytes,
        file_name: str,
        emit: ProgressCallback,
    ) -> IngestionResult:
        file_id = job.file_id

        emit(Validating(file_id, 0, "Validating file"))
        self._validate(data, file_name, job.kb_id)

        emit(Saving(file_id, 5, "Saving file to local storage"))
        saved = self.document_store.save(data, job.kb_id, file_id, file_name)
        job.saved_path = saved.storage_path

        emit(Extracting(file_id, 15, "Extracting text from file"))
        text = self.extractor.extract(data, file_name)
        if not text.strip():
            raise RagExtractionError(f"No text content extracted from {file_name}")

        emit(Chunking(file_id, 30, "Splitting text into chunks"))
        chunks = self.chunker.chunk(text)
        if not chunks:
            raise RagExtractionError(f"No chunks produced from {file_name}")
        log_with_context(logger, logging.DEBUG, f"Split into {len(chunks)} chunks", stage="chunking")

        emit(Embedding(file_id, 40, "Ensuring embedding model is available"))

        def on_model_progress(progress: ModelProgress) -> None:
            if progress.percent is not None:
                emit(Embedding(
                    file_id,
                    scale_percent(progress.percent / 100, 40, 50),
                    f"Preparing embedding model: {progress.status}",
                    detail={"status": progress.status},
                ))

        if not self.embedding_client.ensure_model_available(on_progress=on_model_progress):
            raise RagProvisioningError(
                f"Embedding model {self.embedding_client.model} is not available"
            )

        emit(Embedding(
            file_id, 50, f"Generating embeddings for {len(chunks)} chunks",
            processed=0, total=len(chunks),
        ))

        def on_embedding_progress(progress: EmbeddingProgress) -> None:
            emit(Embedding(
                file_id,
                scale_percent(progress.processed / progress.total, 50, 90),
                f"Generating embeddings ({progress.processed}/{progress.total})",
                processed=progress.processed,
                total=progress.total,
            ))

        vectors = self.embedding_client.embed_batch(
            chunks,
            concurrency=self.embed_concurrency,
            on_progress=on_embedding_progress,
        )

        emit(Storing(file_id, 90, "Storing vectors to database"))
        records = [
            VectorRecord(id=record_id(file_id, i), file_id=file_id, content=chunk, embedding=vector)
            for i, (chunk, vector) in enumerate(zip(chunks, vectors))
        ]
        # Marked first so a partially applied insert is rolled back too
        job.vectors_inserted = True
        self.vector_store.insert(job.kb_id, records, kind=CollectionKind.KNOWLEDGE_BASE)

        return IngestionResult(
            file_id=file_id,
            storage_path=saved.storage_path,
            extracted_text=text,
            chunk_count=len(records),
            file_size=saved.file_size,
        )

    def _validate(self, data: bytes, file_name: str, kb_id: str) -> None:
        if not kb_id:
            raise RagValidationError("Knowledge base id is required")
        if not file_name:
            raise RagValidationError("File name is required")

        size = len(data)
        if size > self.max_file_size:
            raise RagValidationError(
                f"File {file_name} is {size} bytes, exceeds limit of {self.max_file_size} bytes"
            )

        ext = Path(file_name).suffix.lower()
        if ext not in self.allowed_extensions:
            raise RagValidationError(
                f"Unsupported file type {ext or '(none)'}; "
                f"allowed: {', '.join(self.allowed_extensions)}"
            )

    def _rollback(self, job: IngestionJob) -> None:
        """Undo persisted effects: vectors first, then the saved file."""
        if job.vectors_inserted:
            try:
                self.vector_store.delete_by_file(job.kb_id, job.file_id)
                logger.info(f"Rolled back vectors of {job.file_id}")
            except Exception as e:
                logger.error(f"Rollback of vectors for {job.file_id} failed: {e}")

        if job.saved_path:
            try:
                self.document_store.delete(job.saved_path)
                logger.info(f"Rolled back saved file {job.saved_path}")
            except Exception as e:
                logger.error(f"Rollback of file {job.saved_path} failed: {e}")
