"""
Vector Store Manager - LanceDB collections per knowledge base and note.

Each owner gets its own table (``kb_{id}`` or ``note_{id}``) with a fixed
embedding width. Search uses cosine distance; ``search_many`` fans out over
several collections and merges the results into one ranking, treating any
collection that fails as empty.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

import lancedb
import pyarrow as pa

from ..core.exceptions import RagStorageError, RagValidationError
from ..core.types import CollectionKind, CollectionRef, EMBEDDING_DIMENSION
from .contracts import RECORD_COLUMNS, SearchHit, VectorRecord, collection_schema


logger = logging.getLogger(__name__)


OwnerLike = Union[str, CollectionRef]

# table_names() pages at 10 by default
TABLE_LISTING_LIMIT = 1_000_000


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class VectorStoreManager:
    """
    Manages one LanceDB database directory.

    Example:
        >>> store = VectorStoreManager(Path("~/.localrag/vector-db"), dimension=768)
        >>> store.insert("kb-1", records)
        >>> hits = store.search_many(["kb-1", CollectionRef("n-7", CollectionKind.NOTE)], query, limit=5)
    """

    def __init__(
        self,
        db_path: Path,
        dimension: int = EMBEDDING_DIMENSION,
        max_workers: int = 8,
    ):
        """
        Args:
            db_path: LanceDB directory (created if missing)
            dimension: Embedding width of every collection
            max_workers: Thread pool size for ``search_many``
        """
        if dimension <= 0:
            raise RagValidationError("dimension must be positive")

        self.db_path = Path(db_path)
        self.dimension = dimension
        self.max_workers = max_workers
        self._db = None
        self._lock = threading.Lock()

    def _connect(self):
        with self._lock:
            if self._db is None:
                try:
                    self.db_path.mkdir(parents=True, exist_ok=True)
                    self._db = lancedb.connect(str(self.db_path))
                except Exception as e:
                    raise RagStorageError(f"Failed to open vector database at {self.db_path}: {e}") from e
                logger.debug(f"Connected to vector database at {self.db_path}")
            return self._db

    @staticmethod
    def _ref(owner: OwnerLike, kind: Optional[CollectionKind]) -> CollectionRef:
        if isinstance(owner, CollectionRef):
            return owner
        return CollectionRef(str(owner), kind or CollectionKind.KNOWLEDGE_BASE)

    def collection_exists(self, owner: OwnerLike, kind: Optional[CollectionKind] = None) -> bool:
        ref = self._ref(owner, kind)
        db = self._connect()
        try:
            return ref.table_name in db.table_names(limit=TABLE_LISTING_LIMIT)
        except Exception as e:
            raise RagStorageError(f"Failed to list vector collections: {e}") from e

    def create_collection(self, owner: OwnerLike, kind: Optional[CollectionKind] = None):
        """
        Create the collection if it doesn't exist and return the table.

        Raises:
            RagStorageError: If an existing table has a different vector width
        """
        ref = self._ref(owner, kind)
        if self.collection_exists(ref):
            return self._open(ref)

        db = self._connect()
        try:
            table = db.create_table(
                ref.table_name,
                schema=collection_schema(self.dimension),
                exist_ok=True,
            )
        except Exception as e:
            raise RagStorageError(f"Failed to create collection {ref.table_name}: {e}") from e

        logger.info(f"Created {ref.kind.label} collection {ref.table_name}")
        return table

    def drop_collection(self, owner: OwnerLike, kind: Optional[CollectionKind] = None) -> bool:
        """
        Drop the collection.

        Returns:
            True if a table was dropped, False if none existed
        """
        ref = self._ref(owner, kind)
        if not self.collection_exists(ref):
            logger.debug(f"Collection {ref.table_name} does not exist, nothing to drop")
            return False

        try:
            self._connect().drop_table(ref.table_name)
        except Exception as e:
            raise RagStorageError(f"Failed to drop collection {ref.table_name}: {e}") from e

        logger.info(f"Dropped {ref.kind.label} collection {ref.table_name}")
        return True

    def insert(
        self,
        owner: OwnerLike,
        records: Sequence[VectorRecord],
        kind: Optional[CollectionKind] = None,
    ) -> int:
        """
        Batch-insert records, creating the collection on first use.

        Returns:
            Number of records inserted

        Raises:
            RagValidationError: If a record's vector width is wrong
            RagStorageError: On LanceDB failures
        """
        if not records:
            return 0

        for record in records:
            if len(record.embedding) != self.dimension:
                raise RagValidationError(
                    f"Record {record.id} has dimension {len(record.embedding)}, "
                    f"expected {self.dimension}"
                )

        ref = self._ref(owner, kind)
        table = self.create_collection(ref)
        try:
            table.add([record.to_row() for record in records])
        except Exception as e:
            raise RagStorageError(f"Failed to insert into {ref.table_name}: {e}") from e

        logger.debug(f"Inserted {len(records)} records into {ref.table_name}")
        return len(records)

    def delete_by_file(
        self,
        owner: OwnerLike,
        file_id: str,
        kind: Optional[CollectionKind] = None,
    ) -> None:
        """Delete every record of ``file_id``; missing collections are ignored."""
        ref = self._ref(owner, kind)
        if not self.collection_exists(ref):
            return

        table = self._open(ref)
        try:
            table.delete(f"file_id = {_quote(file_id)}")
        except Exception as e:
            raise RagStorageError(
                f"Failed to delete vectors of file {file_id} from {ref.table_name}: {e}"
            ) from e

        logger.debug(f"Deleted vectors of file {file_id} from {ref.table_name}")

    def count(self, owner: OwnerLike, kind: Optional[CollectionKind] = None) -> int:
        ref = self._ref(owner, kind)
        if not self.collection_exists(ref):
            return 0
        try:
            return self._open(ref).count_rows()
        except Exception as e:
            raise RagStorageError(f"Failed to count rows of {ref.table_name}: {e}") from e

    def search(
        self,
        owner: OwnerLike,
        vector: Sequence[float],
        limit: int = 5,
        kind: Optional[CollectionKind] = None,
    ) -> List[SearchHit]:
        """
        Nearest neighbours by cosine distance, ascending.

        Raises:
            RagValidationError: If the query vector width is wrong
            RagStorageError: If the collection is missing or search fails
        """
        if len(vector) != self.dimension:
            raise RagValidationError(
                f"Query vector has dimension {len(vector)}, expected {self.dimension}"
            )
        if limit <= 0:
            return []

        ref = self._ref(owner, kind)
        if not self.collection_exists(ref):
            raise RagStorageError(f"Collection {ref.table_name} does not exist")

        table = self._open(ref)
        try:
            rows = (
                table.search([float(v) for v in vector], vector_column_name="embedding")
                .distance_type("cosine")
                .select(RECORD_COLUMNS)
                .limit(limit)
                .to_list()
            )
        except Exception as e:
            raise RagStorageError(f"Search failed on {ref.table_name}: {e}") from e

        hits = [
            SearchHit(
                id=row["id"],
                file_id=row["file_id"],
                content=row["content"],
                distance=float(row["_distance"]),
                owner_id=ref.owner_id,
                kind=ref.kind,
            )
            for row in rows
        ]
        hits.sort(key=lambda hit: (hit.distance, hit.id))
        return hits

    def search_many(
        self,
        owners: Iterable[OwnerLike],
        vector: Sequence[float],
        limit: int = 5,
    ) -> List[SearchHit]:
        """
        Search several collections concurrently and merge the rankings.

        A collection that is missing or fails contributes no hits. Results
        are sorted by distance (ties by owner id, then record id) and
        truncated to ``limit``.
        """
        refs = [CollectionRef.coerce(owner) for owner in owners]
        if not refs or limit <= 0:
            return []

        def search_one(ref: CollectionRef) -> List[SearchHit]:
            try:
                return self.search(ref, vector, limit=limit)
            except Exception as e:
                logger.warning(f"Search on {ref.table_name} failed, treating as empty: {e}")
                return []

        workers = max(1, min(self.max_workers, len(refs)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(search_one, refs))

        merged = [hit for hits in results for hit in hits]
        merged.sort(key=lambda hit: (hit.distance, hit.owner_id, hit.id))
        return merged[:limit]

    def close(self) -> None:
        with self._lock:
            self._db = None

    def _open(self, ref: CollectionRef):
        try:
            table = self._connect().open_table(ref.table_name)
        except Exception as e:
            raise RagStorageError(f"Failed to open collection {ref.table_name}: {e}") from e

        width = _embedding_width(table.schema)
        if width != self.dimension:
            raise RagStorageError(
                f"Collection {ref.table_name} stores {width}-d vectors, expected {self.dimension}"
            )
        return table


def _embedding_width(schema: pa.Schema) -> Optional[int]:
    try:
        field_type = schema.field("embedding").type
    except KeyError:
        return None
    if pa.types.is_fixed_size_list(field_type):
        return field_type.list_size
    return None
