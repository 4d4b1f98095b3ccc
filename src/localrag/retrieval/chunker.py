"""
Chunker - Split extracted text into embedding-sized windows.

Fixed-size character windows with overlap. Windows are never trimmed or
moved to word boundaries, so consecutive chunks cover the text without gaps
and the same input always yields the same chunks.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..core.exceptions import RagValidationError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChunkingPolicy:
    """
    Chunking parameters.

    Attributes:
        max_size: Window size in characters
        overlap: Characters shared by consecutive windows
    """
    max_size: int = 1000
    overlap: int = 200

    @property
    def step(self) -> int:
        """Window advance; non-overlapping when overlap >= max_size."""
        if self.overlap >= self.max_size:
            return self.max_size
        return self.max_size - self.overlap


@dataclass(frozen=True)
class TextChunk:
    index: int
    content: str
    start_offset: int
    end_offset: int


class Chunker:
    """
    Chunks text with a fixed policy.

    Example:
        >>> chunker = Chunker(ChunkingPolicy(max_size=1000, overlap=200))
        >>> len(chunker.chunk("x" * 3000))
        4
    """

    def __init__(self, policy: Optional[ChunkingPolicy] = None):
        self.policy = policy or ChunkingPolicy()

    def chunk(self, text: str) -> List[str]:
        return chunk_text(text, max_size=self.policy.max_size, overlap=self.policy.overlap)

    def chunk_with_offsets(self, text: str) -> List[TextChunk]:
        return split_windows(text, max_size=self.policy.max_size, overlap=self.policy.overlap)


def split_windows(text: str, max_size: int = 1000, overlap: int = 200) -> List[TextChunk]:
    """
    Split text into windows, keeping character offsets.

    Windows that are blank after trimming are dropped; kept windows are
    returned as-is. The loop stops once a window reaches the end of the text.

    Raises:
        RagValidationError: If max_size <= 0 or overlap < 0
    """
    if max_size <= 0:
        raise RagValidationError("max_size must be positive")
    if overlap < 0:
        raise RagValidationError("overlap must be non-negative")

    if not text:
        return []

    policy = ChunkingPolicy(max_size=max_size, overlap=overlap)
    if overlap >= max_size:
        logger.warning(
            f"overlap ({overlap}) >= max_size ({max_size}), using non-overlapping windows"
        )

    chunks: List[TextChunk] = []
    text_len = len(text)
    start = 0
    while start < text_len:
        end = min(start + max_size, text_len)
        window = text[start:end]
        if window.strip():
            chunks.append(TextChunk(len(chunks), window, start, end))
        if end >= text_len:
            break
        start += policy.step

    return chunks


def chunk_text(text: str, max_size: int = 1000, overlap: int = 200) -> List[str]:
    """
    Split text into overlapping chunks.

    Args:
        text: Text content to chunk
        max_size: Chunk size in characters
        overlap: Overlap between chunks in characters

    Returns:
        Chunk strings in text order
    """
    return [chunk.content for chunk in split_windows(text, max_size, overlap)]
