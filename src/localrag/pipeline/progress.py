"""
Ingestion progress events and per-job state.

Progress is a closed set of event types, one per pipeline stage, so callers
can dispatch on the type instead of inspecting loosely-shaped payloads:

    Validating | Saving | Extracting | Chunking | Embedding | Storing
    | Completed | Failed
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional


class IngestionStage(str, Enum):
    VALIDATING = "validating"
    SAVING = "saving"
    EXTRACTING = "extracting"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    STORING = "storing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ProgressEvent:
    """
    Base progress event.

    Attributes:
        file_id: File or note the event belongs to
        percent: Overall job progress, 0-100
        message: Human-readable status line
        detail: Optional stage-specific data
    """
    file_id: str
    percent: int
    message: str = ""
    detail: Dict[str, Any] = field(default_factory=dict)

    stage = None  # set by subclasses


@dataclass
class Validating(ProgressEvent):
    stage = IngestionStage.VALIDATING


@dataclass
class Saving(ProgressEvent):
    stage = IngestionStage.SAVING


@dataclass
class Extracting(ProgressEvent):
    stage = IngestionStage.EXTRACTING


@dataclass
class Chunking(ProgressEvent):
    stage = IngestionStage.CHUNKING


@dataclass
class Embedding(ProgressEvent):
    """Embedding stage; ``processed``/``total`` count chunks once batching starts."""
    processed: int = 0
    total: int = 0

    stage = IngestionStage.EMBEDDING


@dataclass
class Storing(ProgressEvent):
    stage = IngestionStage.STORING


@dataclass
class Completed(ProgressEvent):
    result: Any = None

    stage = IngestionStage.COMPLETED


@dataclass
class Failed(ProgressEvent):
    reason: str = ""

    stage = IngestionStage.FAILED


ProgressCallback = Callable[[ProgressEvent], None]


@dataclass
class IngestionJob:
    """
    In-memory state of one ingestion; drives rollback, never persisted.

    Attributes:
        file_id: File being ingested
        kb_id: Target knowledge base
        stage: Current stage
        percent: Last reported progress
        saved_path: Storage path once the file was written
        vectors_inserted: Set before the vector insert is attempted
    """
    file_id: str
    kb_id: str
    stage: IngestionStage = IngestionStage.VALIDATING
    percent: int = 0
    saved_path: Optional[str] = None
    vectors_inserted: bool = False


def scale_percent(fraction: float, start: int, end: int) -> int:
    """Map a 0..1 sub-progress onto the ``start``..``end`` band."""
    fraction = min(max(fraction, 0.0), 1.0)
    return start + round((end - start) * fraction)
