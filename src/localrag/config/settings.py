"""
Configuration loader for localrag.

Settings come from an optional YAML file, fall back to defaults, and are
then overridden by environment variables.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from ..core.exceptions import RagConfigError
from ..core.types import DEFAULT_BASE_URL, DEFAULT_EMBED_MODEL, EMBEDDING_DIMENSION


logger = logging.getLogger(__name__)


DEFAULT_DATA_DIR = Path.home() / ".localrag"
DEFAULT_EXTENSIONS = (".txt", ".md", ".json", ".csv", ".html", ".pdf", ".docx")


@dataclass
class RuntimeSettings:
    """Local inference runtime location and provisioning behaviour."""
    base_url: str = DEFAULT_BASE_URL
    detection_timeout_seconds: float = 2.0
    version: str = "v0.9.0"
    resources_dir: Optional[str] = None
    startup_attempts: int = 30
    startup_interval_ms: float = 1000.0


@dataclass
class EmbeddingSettings:
    """Embedding model and request policy."""
    model: str = DEFAULT_EMBED_MODEL
    dimension: int = EMBEDDING_DIMENSION
    timeout_seconds: float = 60.0
    max_attempts: int = 3
    base_delay_ms: float = 1000.0
    inter_call_delay_seconds: float = 1.0
    concurrency: int = 1
    model_poll_attempts: int = 5
    model_poll_interval_ms: float = 500.0


@dataclass
class ChunkingSettings:
    max_size: int = 1000
    overlap: int = 200


@dataclass
class StorageSettings:
    """Where documents and vectors live, and what may be ingested."""
    data_dir: str = str(DEFAULT_DATA_DIR)
    documents_dir: str = "documents"
    vector_dir: str = "vector-db"
    max_file_size: int = 100 * 1024 * 1024
    allowed_extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()

    @property
    def vector_path(self) -> Path:
        return self.data_path / self.vector_dir

    @property
    def runtime_path(self) -> Path:
        return self.data_path / "ollama"


@dataclass
class SearchSettings:
    default_limit: int = 5
    max_workers: int = 8


@dataclass
class RagSettings:
    """Aggregated configuration for every localrag component."""
    runtime: RuntimeSettings = field(default_factory=RuntimeSettings)
    embedding: EmbeddingSettings = field(default_factory=EmbeddingSettings)
    chunking: ChunkingSettings = field(default_factory=ChunkingSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    search: SearchSettings = field(default_factory=SearchSettings)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RagSettings":
        """Build settings from a nested mapping; unknown keys are rejected."""
        if not isinstance(data, dict):
            raise RagConfigError("Configuration root must be a mapping")

        sections = {
            "runtime": RuntimeSettings,
            "embedding": EmbeddingSettings,
            "chunking": ChunkingSettings,
            "storage": StorageSettings,
            "search": SearchSettings,
        }
        unknown = set(data) - set(sections)
        if unknown:
            raise RagConfigError(f"Unknown configuration sections: {sorted(unknown)}")

        kwargs = {}
        for name, section_cls in sections.items():
            values = data.get(name) or {}
            if not isinstance(values, dict):
                raise RagConfigError(f"Section '{name}' must be a mapping")
            allowed = {f.name for f in fields(section_cls)}
            bad = set(values) - allowed
            if bad:
                raise RagConfigError(f"Unknown keys in '{name}': {sorted(bad)}")
            if name == "storage" and "allowed_extensions" in values:
                values = dict(values)
                values["allowed_extensions"] = tuple(
                    ext.lower() for ext in values["allowed_extensions"]
                )
            kwargs[name] = section_cls(**values)

        settings = cls(**kwargs)
        settings.validate()
        return settings

    def validate(self) -> None:
        """Check value ranges."""
        if self.chunking.max_size <= 0:
            raise RagConfigError("chunking.max_size must be positive")
        if self.chunking.overlap < 0:
            raise RagConfigError("chunking.overlap must be non-negative")
        if self.embedding.dimension <= 0:
            raise RagConfigError("embedding.dimension must be positive")
        if self.embedding.max_attempts < 1:
            raise RagConfigError("embedding.max_attempts must be at least 1")
        if self.embedding.concurrency < 1:
            raise RagConfigError("embedding.concurrency must be at least 1")
        if self.storage.max_file_size <= 0:
            raise RagConfigError("storage.max_file_size must be positive")

    def apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        data_dir = os.environ.get("LOCALRAG_DATA_DIR")
        if data_dir:
            self.storage.data_dir = data_dir

        resources_dir = os.environ.get("LOCALRAG_RESOURCES_DIR")
        if resources_dir:
            self.runtime.resources_dir = resources_dir

        base_url = os.environ.get("LOCALRAG_OLLAMA_URL")
        if base_url:
            self.runtime.base_url = base_url

        model = os.environ.get("LOCALRAG_EMBED_MODEL")
        if model:
            self.embedding.model = model


def load_settings(config_path: Optional[Path] = None) -> RagSettings:
    """
    Load settings from YAML (if given) and apply environment overrides.

    Args:
        config_path: Path to YAML config file (optional)

    Returns:
        Validated RagSettings
    """
    if config_path is None:
        settings = RagSettings()
    else:
        config_path = Path(config_path)
        if not config_path.exists():
            raise RagConfigError(f"Config file not found: {config_path}")

        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise RagConfigError(f"Invalid YAML in {config_path}: {e}") from e

        settings = RagSettings.from_dict(data or {})

    settings.apply_env_overrides()
    return settings
