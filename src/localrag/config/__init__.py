from .settings import (
    ChunkingSettings,
    EmbeddingSettings,
    RagSettings,
    RuntimeSettings,
    SearchSettings,
    StorageSettings,
    load_settings,
)

__all__ = [
    "ChunkingSettings",
    "EmbeddingSettings",
    "RagSettings",
    "RuntimeSettings",
    "SearchSettings",
    "StorageSettings",
    "load_settings",
]
