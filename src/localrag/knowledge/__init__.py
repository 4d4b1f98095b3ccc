"""
Metadata collaborator interface and knowledge lifecycle.

``KnowledgeService`` lives in ``localrag.knowledge.lifecycle``; it is not
re-exported here because it depends on the pipeline package.
"""

from .metadata import (
    FileInfo,
    MetadataRepository,
    NoteInfo,
    NullMetadataRepository,
    SessionInfo,
)

__all__ = [
    "FileInfo",
    "MetadataRepository",
    "NoteInfo",
    "NullMetadataRepository",
    "SessionInfo",
]
