from .client import EmbeddingClient

__all__ = ["EmbeddingClient"]
