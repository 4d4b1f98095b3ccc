"""
Embedding pipelines for documents and notes, serialized through a shared
job queue.
"""

from .ingestion import BatchItemResult, DocumentIngestionPipeline, IngestionResult
from .notes import NoteEmbeddingPipeline, NoteEmbeddingResult
from .progress import (
    Chunking,
    Completed,
    Embedding,
    Extracting,
    Failed,
    IngestionJob,
    IngestionStage,
    ProgressEvent,
    Saving,
    Storing,
    Validating,
)
from .queue import SerialJobQueue

__all__ = [
    "BatchItemResult",
    "DocumentIngestionPipeline",
    "IngestionResult",
    "NoteEmbeddingPipeline",
    "NoteEmbeddingResult",
    "Chunking",
    "Completed",
    "Embedding",
    "Extracting",
    "Failed",
    "IngestionJob",
    "IngestionStage",
    "ProgressEvent",
    "Saving",
    "Storing",
    "Validating",
    "SerialJobQueue",
]
