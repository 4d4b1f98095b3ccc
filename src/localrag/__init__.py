"""
localrag - offline document-to-answer pipeline.

Ingests documents and notes, embeds them through a locally hosted inference
runtime, stores vectors in per-owner LanceDB collections and retrieves
ranked context for chat.

Components:
- runtime: detect an external runtime or provision the bundled one
- embedding: single and batch embeddings with retry and model provisioning
- retrieval: chunking and RAG context assembly
- vector: LanceDB collection management and multi-collection search
- pipeline: document ingestion and note embedding through a serial job queue
- knowledge: metadata collaborator interface and ordered deletion
"""

__version__ = "0.1.0"
