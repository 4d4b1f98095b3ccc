"""
Core subpackage: types, exceptions, and logging utilities.
"""

from .types import (
    CollectionKind,
    CollectionRef,
    EmbeddingProgress,
    ModelProgress,
    ProvisioningState,
    RuntimeSource,
)
from .exceptions import (
    RagError,
    RagValidationError,
    RagUpstreamError,
    RagTimeoutError,
    RagProvisioningError,
    RagStorageError,
    RagExtractionError,
    RagConfigError,
)

__all__ = [
    # Types
    "CollectionKind",
    "CollectionRef",
    "EmbeddingProgress",
    "ModelProgress",
    "ProvisioningState",
    "RuntimeSource",
    # Exceptions
    "RagError",
    "RagValidationError",
    "RagUpstreamError",
    "RagTimeoutError",
    "RagProvisioningError",
    "RagStorageError",
    "RagExtractionError",
    "RagConfigError",
]
