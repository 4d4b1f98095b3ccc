"""
Chunking and retrieval.
"""

from .chunker import Chunker, ChunkingPolicy, TextChunk, chunk_text, split_windows
from .context import ContextSnippet, RagContextAssembler, format_context

__all__ = [
    "Chunker",
    "ChunkingPolicy",
    "TextChunk",
    "chunk_text",
    "split_windows",
    "ContextSnippet",
    "RagContextAssembler",
    "format_context",
]
