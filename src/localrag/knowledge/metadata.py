"""
Relational metadata collaborator.

The pipeline never owns knowledge-base, file, note or chat-session records;
it reads and deletes them through this interface. Hosts back it with their
own database; ``NullMetadataRepository`` serves headless/CLI use where no
records exist.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class FileInfo:
    """Knowledge-base file record."""
    id: str
    knowledge_base_id: str
    file_name: str
    storage_path: Optional[str] = None


@dataclass
class NoteInfo:
    """Note record."""
    id: str
    title: str
    content: str = ""


@dataclass
class SessionInfo:
    """Chat session referencing a model."""
    id: str
    title: str = ""


class MetadataRepository(ABC):
    """Read/delete access to records owned by the host application."""

    @abstractmethod
    def get_file(self, file_id: str) -> Optional[FileInfo]:
        """Return the file record or None."""

    @abstractmethod
    def get_note(self, note_id: str) -> Optional[NoteInfo]:
        """Return the note record or None."""

    @abstractmethod
    def delete_knowledge_base(self, kb_id: str) -> bool:
        """Delete the knowledge-base record; False if it did not exist."""

    @abstractmethod
    def delete_file(self, file_id: str) -> bool:
        """Delete the file record; False if it did not exist."""

    @abstractmethod
    def delete_note(self, note_id: str) -> bool:
        """Delete the note record; False if it did not exist."""

    @abstractmethod
    def sessions_using_model(self, model_id: str) -> List[SessionInfo]:
        """Chat sessions configured with ``model_id``."""


class NullMetadataRepository(MetadataRepository):
    """Repository with no records; deletes always report success."""

    def get_file(self, file_id: str) -> Optional[FileInfo]:
        return None

    def get_note(self, note_id: str) -> Optional[NoteInfo]:
        return None

    def delete_knowledge_base(self, kb_id: str) -> bool:
        return True

    def delete_file(self, file_id: str) -> bool:
        return True

    def delete_note(self, note_id: str) -> bool:
        return True

    def sessions_using_model(self, model_id: str) -> List[SessionInfo]:
        return []
