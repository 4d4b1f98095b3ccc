"""
Runtime provider clients.
"""

from .ollama_client import ModelListing, OllamaClient

__all__ = ["ModelListing", "OllamaClient"]
