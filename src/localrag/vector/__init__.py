"""
Vector collections backed by LanceDB.
"""

from .contracts import SearchHit, VectorRecord, collection_schema, record_id
from .store import VectorStoreManager

__all__ = [
    "SearchHit",
    "VectorRecord",
    "collection_schema",
    "record_id",
    "VectorStoreManager",
]
