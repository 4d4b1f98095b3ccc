"""
Shared test fixtures and configuration for pytest.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import MagicMock

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from localrag.knowledge.metadata import (  # noqa: E402
    FileInfo,
    MetadataRepository,
    NoteInfo,
    SessionInfo,
)
from localrag.providers.ollama_client import ModelListing  # noqa: E402


logger = logging.getLogger(__name__)


# ============================================================================
# Environment detection
# ============================================================================

def is_runtime_available() -> bool:
    """Check if a live inference runtime is reachable for integration tests."""
    base_url = os.environ.get("LOCALRAG_OLLAMA_URL")
    if not base_url:
        return False

    from localrag.providers.ollama_client import OllamaClient

    try:
        return OllamaClient(base_url).probe(timeout_seconds=2.0)
    except Exception as e:
        logger.debug(f"Runtime not available: {e}")
        return False


# ============================================================================
# Pytest hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (requires a live runtime)")
    config.addinivalue_line("markers", "e2e: End-to-end tests through build_services")
    config.addinivalue_line("markers", "slow: Tests that take a long time to run")


def pytest_collection_modifyitems(config, items):
    """Automatically skip integration tests if no runtime is reachable."""
    if not any("integration" in item.keywords for item in items):
        return
    if is_runtime_available():
        return

    skip_runtime = pytest.mark.skip(
        reason="Runtime not available (set LOCALRAG_OLLAMA_URL to a running Ollama)"
    )

    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_runtime)


# ============================================================================
# Fakes
# ============================================================================

class InMemoryMetadataRepository(MetadataRepository):
    """Metadata repository backed by dicts, recording delete calls."""

    def __init__(self):
        self.knowledge_bases: Dict[str, str] = {}
        self.files: Dict[str, FileInfo] = {}
        self.notes: Dict[str, NoteInfo] = {}
        self.sessions: Dict[str, List[SessionInfo]] = {}
        self.calls: List[str] = []

    def get_file(self, file_id: str) -> Optional[FileInfo]:
        return self.files.get(file_id)

    def get_note(self, note_id: str) -> Optional[NoteInfo]:
        return self.notes.get(note_id)

    def delete_knowledge_base(self, kb_id: str) -> bool:
        self.calls.append(f"delete_knowledge_base:{kb_id}")
        return self.knowledge_bases.pop(kb_id, None) is not None

    def delete_file(self, file_id: str) -> bool:
        self.calls.append(f"delete_file:{file_id}")
        return self.files.pop(file_id, None) is not None

    def delete_note(self, note_id: str) -> bool:
        self.calls.append(f"delete_note:{note_id}")
        return self.notes.pop(note_id, None) is not None

    def sessions_using_model(self, model_id: str) -> List[SessionInfo]:
        return self.sessions.get(model_id, [])


def fake_vector(seed: int, dimension: int = 4) -> List[float]:
    """Deterministic non-zero vector for tests."""
    return [float((seed + i) % 7 + 1) for i in range(dimension)]


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def metadata() -> InMemoryMetadataRepository:
    return InMemoryMetadataRepository()


@pytest.fixture
def ollama_client() -> MagicMock:
    """OllamaClient double whose runtime has the default model installed."""
    client = MagicMock()
    client.base_url = "http://127.0.0.1:11434"
    client.list_models.return_value = ModelListing(names=["nomic-embed-text:latest"])
    client.embeddings.side_effect = lambda text, model, timeout_seconds=None: fake_vector(len(text))
    return client


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    delays: List[float] = []

    def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays
    return sleep
