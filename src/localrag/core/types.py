"""
Core data types shared across the runtime, embedding and pipeline layers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


DEFAULT_BASE_URL = "http://127.0.0.1:11434"
DEFAULT_EMBED_MODEL = "nomic-embed-text"
EMBEDDING_DIMENSION = 768


class RuntimeSource(str, Enum):
    """Who owns the inference runtime process."""
    EXTERNAL = "external"
    SELF_MANAGED = "self_managed"
    UNRESOLVED = "unresolved"


class CollectionKind(str, Enum):
    """Owner type of a vector collection; the value is the table prefix."""
    KNOWLEDGE_BASE = "kb_"
    NOTE = "note_"

    @property
    def label(self) -> str:
        return "note" if self is CollectionKind.NOTE else "knowledge_base"


@dataclass
class ProvisioningState:
    """
    Outcome of runtime provisioning.

    Attributes:
        source: Whether the runtime is external, self-managed or not resolved
        base_url: Base URL of the runtime HTTP API
        executable_path: Provisioned executable (self-managed only)
    """
    source: RuntimeSource = RuntimeSource.UNRESOLVED
    base_url: str = DEFAULT_BASE_URL
    executable_path: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.source is not RuntimeSource.UNRESOLVED


@dataclass(frozen=True)
class CollectionRef:
    """Identifies one vector collection by owner id and kind."""
    owner_id: str
    kind: CollectionKind = CollectionKind.KNOWLEDGE_BASE

    @property
    def table_name(self) -> str:
        return f"{self.kind.value}{self.owner_id}"

    @classmethod
    def coerce(cls, owner) -> "CollectionRef":
        """Accept a CollectionRef or a bare knowledge-base id."""
        if isinstance(owner, CollectionRef):
            return owner
        return cls(owner_id=str(owner))


@dataclass
class EmbeddingProgress:
    """Per-item progress of a batch embedding run."""
    processed: int
    total: int
    percent: int = field(init=False)

    def __post_init__(self):
        self.percent = round(self.processed / self.total * 100) if self.total else 100


@dataclass
class ModelProgress:
    """Progress of ensuring a model is installed in the runtime."""
    status: str
    percent: Optional[int] = None
