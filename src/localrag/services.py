"""
Service wiring.

Builds every localrag component from RagSettings, sharing one runtime client,
one vector store and one serial job queue between the pipelines.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config.settings import RagSettings
from .embedding.client import EmbeddingClient
from .knowledge.lifecycle import KnowledgeService
from .knowledge.metadata import MetadataRepository, NullMetadataRepository
from .pipeline.ingestion import DocumentIngestionPipeline
from .pipeline.notes import NoteEmbeddingPipeline
from .pipeline.queue import SerialJobQueue
from .providers.ollama_client import OllamaClient
from .retrieval.chunker import Chunker, ChunkingPolicy
from .retrieval.context import RagContextAssembler
from .runtime.assets import BundledAssets
from .runtime.models import ModelManager
from .runtime.provisioner import RuntimeProvisioner
from .storage.file_store import DocumentStore
from .utils.retry import RetryPolicy
from .vector.store import VectorStoreManager


logger = logging.getLogger(__name__)


@dataclass
class RagServices:
    settings: RagSettings
    client: OllamaClient
    assets: BundledAssets
    provisioner: RuntimeProvisioner
    embedding: EmbeddingClient
    vector_store: VectorStoreManager
    document_store: DocumentStore
    queue: SerialJobQueue
    ingestion: DocumentIngestionPipeline
    notes: NoteEmbeddingPipeline
    assembler: RagContextAssembler
    knowledge: KnowledgeService
    models: ModelManager

    def close(self, stop_runtime: bool = True) -> None:
        """Drain queued jobs, release the vector store and stop our runtime."""
        self.queue.shutdown(wait=True)
        self.vector_store.close()
        if stop_runtime:
            self.provisioner.shutdown()


def build_services(
    settings: RagSettings,
    metadata: Optional[MetadataRepository] = None,
) -> RagServices:
    """
    Assemble all components.

    Args:
        settings: Loaded settings
        metadata: Host metadata repository (no records when omitted)
    """
    metadata = metadata or NullMetadataRepository()
    storage = settings.storage
    embedding_settings = settings.embedding

    resources_dir = (
        Path(settings.runtime.resources_dir).expanduser()
        if settings.runtime.resources_dir
        else storage.data_path / "resources"
    )

    client = OllamaClient(
        base_url=settings.runtime.base_url,
        timeout_seconds=embedding_settings.timeout_seconds,
    )
    assets = BundledAssets(
        resources_root=resources_dir,
        base_path=storage.runtime_path,
        version=settings.runtime.version,
    )
    provisioner = RuntimeProvisioner(
        client,
        assets,
        default_models=[embedding_settings.model],
        detection_timeout_seconds=settings.runtime.detection_timeout_seconds,
        startup_policy=RetryPolicy.fixed(
            settings.runtime.startup_attempts,
            settings.runtime.startup_interval_ms,
        ),
    )
    embedding = EmbeddingClient(
        client,
        model=embedding_settings.model,
        timeout_seconds=embedding_settings.timeout_seconds,
        retry_policy=RetryPolicy(
            max_attempts=embedding_settings.max_attempts,
            base_delay_ms=embedding_settings.base_delay_ms,
        ),
        inter_call_delay_seconds=embedding_settings.inter_call_delay_seconds,
        assets=assets,
        availability_poll=RetryPolicy.fixed(
            embedding_settings.model_poll_attempts,
            embedding_settings.model_poll_interval_ms,
        ),
        expected_dimension=embedding_settings.dimension,
    )
    vector_store = VectorStoreManager(
        storage.vector_path,
        dimension=embedding_settings.dimension,
        max_workers=settings.search.max_workers,
    )
    document_store = DocumentStore(storage.data_path, documents_dir=storage.documents_dir)
    chunker = Chunker(ChunkingPolicy(
        max_size=settings.chunking.max_size,
        overlap=settings.chunking.overlap,
    ))
    queue = SerialJobQueue()

    services = RagServices(
        settings=settings,
        client=client,
        assets=assets,
        provisioner=provisioner,
        embedding=embedding,
        vector_store=vector_store,
        document_store=document_store,
        queue=queue,
        ingestion=DocumentIngestionPipeline(
            document_store,
            vector_store,
            embedding,
            chunker=chunker,
            queue=queue,
            max_file_size=storage.max_file_size,
            allowed_extensions=storage.allowed_extensions,
            embed_concurrency=embedding_settings.concurrency,
        ),
        notes=NoteEmbeddingPipeline(
            vector_store, embedding, metadata, chunker=chunker, queue=queue
        ),
        assembler=RagContextAssembler(
            embedding, vector_store, metadata, default_limit=settings.search.default_limit
        ),
        knowledge=KnowledgeService(vector_store, document_store, metadata, queue=queue),
        models=ModelManager(client, metadata),
    )
    logger.debug(f"Services built with data dir {storage.data_path}")
    return services
