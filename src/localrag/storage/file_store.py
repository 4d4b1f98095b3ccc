"""
File-based document store.

Uploaded documents are kept under the data directory as:

    {data_dir}/documents/{knowledge_base_id}/{file_id}-{file_name}

Storage paths handed to callers are relative to the data directory so that
moving the data directory doesn't invalidate metadata records.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from ..core.exceptions import RagStorageError


logger = logging.getLogger(__name__)


@dataclass
class SaveResult:
    """
    Attributes:
        storage_path: Path relative to the data directory
        absolute_path: Absolute file path
        file_size: Bytes written
    """
    storage_path: str
    absolute_path: Path
    file_size: int


@dataclass
class DiskSpaceInfo:
    total_bytes: int
    free_bytes: int
    used_bytes: int
    percent_used: float

    @property
    def total_formatted(self) -> str:
        return format_bytes(self.total_bytes)

    @property
    def free_formatted(self) -> str:
        return format_bytes(self.free_bytes)

    @property
    def used_formatted(self) -> str:
        return format_bytes(self.used_bytes)


def format_bytes(size: float) -> str:
    """Human-readable size, e.g. ``1.5 GB``."""
    units = ["B", "KB", "MB", "GB", "TB"]
    unit = 0
    while size >= 1024 and unit < len(units) - 1:
        size /= 1024
        unit += 1
    return f"{size:.1f} {units[unit]}"


class DocumentStore:
    """
    Persists uploaded documents per knowledge base.

    Example:
        >>> store = DocumentStore(Path("~/.localrag"))
        >>> result = store.save(data, "kb-1", "f-1", "notes.txt")
        >>> result.storage_path
        'documents/kb-1/f-1-notes.txt'
    """

    def __init__(self, data_dir: Path, documents_dir: str = "documents"):
        self.data_dir = Path(data_dir).expanduser()
        self.documents_dir = documents_dir

    @property
    def documents_path(self) -> Path:
        return self.data_dir / self.documents_dir

    def knowledge_base_path(self, kb_id: str) -> Path:
        return self.documents_path / _sanitize_component(kb_id)

    def storage_path_for(self, kb_id: str, file_id: str, file_name: str) -> str:
        """Relative path of a document; every component is confined to its folder."""
        safe_kb = _sanitize_component(kb_id)
        safe_file = _sanitize_component(file_id)
        safe_name = _sanitize_component(file_name)
        return f"{self.documents_dir}/{safe_kb}/{safe_file}-{safe_name}"

    def resolve(self, storage_path: Union[str, Path]) -> Path:
        """Absolute path of a storage path; must stay inside the data directory."""
        path = (self.data_dir / storage_path).resolve()
        if not path.is_relative_to(self.data_dir.resolve()):
            raise RagStorageError(f"Storage path escapes data directory: {storage_path}")
        return path

    def save(self, data: bytes, kb_id: str, file_id: str, file_name: str) -> SaveResult:
        """
        Write document bytes.

        Raises:
            RagStorageError: If the file cannot be written
        """
        storage_path = self.storage_path_for(kb_id, file_id, file_name)
        absolute_path = self.resolve(storage_path)
        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            absolute_path.write_bytes(data)
            size = absolute_path.stat().st_size
        except OSError as e:
            raise RagStorageError(f"Failed to save file {storage_path}: {e}") from e

        logger.info(f"File saved: {storage_path} ({size} bytes)")
        return SaveResult(storage_path=storage_path, absolute_path=absolute_path, file_size=size)

    def read(self, storage_path: str) -> bytes:
        try:
            return self.resolve(storage_path).read_bytes()
        except OSError as e:
            raise RagStorageError(f"Failed to read file {storage_path}: {e}") from e

    def delete(self, storage_path: str) -> bool:
        """
        Delete one stored file.

        Returns:
            False if the file did not exist
        """
        path = self.resolve(storage_path)
        if not path.exists():
            logger.warning(f"File not found: {storage_path}")
            return False
        try:
            path.unlink()
        except OSError as e:
            raise RagStorageError(f"Failed to delete file {storage_path}: {e}") from e

        logger.info(f"File deleted: {storage_path}")
        return True

    def delete_knowledge_base_directory(self, kb_id: str) -> bool:
        path = self.knowledge_base_path(kb_id)
        if not path.exists():
            logger.warning(f"Directory not found: {path}")
            return False
        try:
            shutil.rmtree(path)
        except OSError as e:
            raise RagStorageError(f"Failed to delete directory {path}: {e}") from e

        logger.info(f"Directory deleted: {path}")
        return True

    def knowledge_base_size(self, kb_id: str) -> int:
        """Total bytes stored for a knowledge base."""
        path = self.knowledge_base_path(kb_id)
        if not path.exists():
            return 0
        return sum(p.stat().st_size for p in path.rglob("*") if p.is_file())

    def disk_space(self, path: Union[str, Path, None] = None) -> DiskSpaceInfo:
        """
        Disk usage of the volume holding ``path`` (the data directory by default).

        The nearest existing ancestor is measured when ``path`` doesn't exist yet.
        """
        target = Path(path).expanduser() if path is not None else self.data_dir
        while not target.exists() and target.parent != target:
            target = target.parent

        try:
            usage = shutil.disk_usage(target)
        except OSError as e:
            raise RagStorageError(f"Failed to read disk usage for {target}: {e}") from e

        percent = (usage.used / usage.total * 100) if usage.total else 0.0
        return DiskSpaceInfo(
            total_bytes=usage.total,
            free_bytes=usage.free,
            used_bytes=usage.used,
            percent_used=percent,
        )


def _sanitize_component(name: str) -> str:
    """Strip directory separators so an id or file name can't leave its folder."""
    safe = name.replace("/", "_").replace("\\", "_")
    if safe in ("", ".", ".."):
        safe = "_"
    return safe
