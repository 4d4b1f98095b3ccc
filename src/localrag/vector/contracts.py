"""
Vector store data contracts.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

import pyarrow as pa

from ..core.types import CollectionKind


RECORD_COLUMNS = ["id", "file_id", "content"]


def record_id(file_id: str, chunk_index: int) -> str:
    """Deterministic record id for one chunk of a file or note."""
    return f"{file_id}_chunk_{chunk_index}"


def collection_schema(dimension: int) -> pa.Schema:
    """Arrow schema of every collection table."""
    return pa.schema([
        pa.field("id", pa.string()),
        pa.field("file_id", pa.string()),
        pa.field("content", pa.string()),
        pa.field("embedding", pa.list_(pa.float32(), dimension)),
    ])


@dataclass
class VectorRecord:
    """
    One stored chunk.

    Attributes:
        id: ``{file_id}_chunk_{index}``
        file_id: Owning file (or note) id, used for deletion
        content: Chunk text
        embedding: Chunk vector
    """
    id: str
    file_id: str
    content: str
    embedding: List[float] = field(default_factory=list)

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "file_id": self.file_id,
            "content": self.content,
            "embedding": [float(v) for v in self.embedding],
        }


@dataclass
class SearchHit:
    """
    A nearest-neighbour match.

    Attributes:
        id: Record id
        file_id: Owning file (or note) id
        content: Chunk text
        distance: Cosine distance, smaller is more similar
        owner_id: Collection owner (knowledge base or note id)
        kind: Collection kind the hit came from
    """
    id: str
    file_id: str
    content: str
    distance: float
    owner_id: str = ""
    kind: CollectionKind = CollectionKind.KNOWLEDGE_BASE

    @property
    def similarity(self) -> float:
        return 1.0 - self.distance
