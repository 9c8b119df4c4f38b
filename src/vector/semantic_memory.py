"""
Semantic index manager.
Maps note ids onto an insert-only vector index and hides removed notes behind tombstones.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional
import threading

from util.logging import logger
from .embeddings import IEmbeddingProvider
from .errors import IndexCapacityError, IndexNotInitializedError, IndexUnavailableError, NotFoundError
from .index import IVectorIndex
from .types import Note, QueryResult
from ..core.config import INDEX_EF_SEARCH, LOCK_TIMEOUT_SEC, get_embedding_provider, get_vector_index


class SemanticIndexManager:
    """
    Owns the vector index and the note id <-> internal id mappings.

    The index cannot delete vectors, so removal only drops the mapping
    entries: the vector stays in the graph as a tombstone and is filtered
    out of every search. ``rebuild`` is the only way to reclaim that space.

    All public operations run under one lock guarding the index, both
    mappings and the id counter together.
    """

    def __init__(
        self,
        embedding_provider: Optional[IEmbeddingProvider] = None,
        index_factory: Optional[Callable[[int], IVectorIndex]] = None,
        lock_timeout: float = LOCK_TIMEOUT_SEC,
    ):
        """
        Create an uninitialized manager; the index is allocated on first write.

        Args:
            embedding_provider: Vector generator, defaults to the configured provider
            index_factory: Callable taking a dimension and returning an empty index
            lock_timeout: Seconds to wait for the state lock before giving up
        """
        self.embedding_provider = embedding_provider or get_embedding_provider()
        self.index_factory = index_factory or get_vector_index
        self.lock_timeout = lock_timeout

        self._lock = threading.Lock()
        self._index: Optional[IVectorIndex] = None
        self.note_to_id: Dict[str, int] = {}
        self.id_to_note: Dict[int, str] = {}
        self.next_id = 0

    @contextmanager
    def _locked(self):
        if not self._lock.acquire(timeout=self.lock_timeout):
            logger.log_operation("vector.lock", "failed", {"timeout_sec": self.lock_timeout})
            raise IndexUnavailableError(f"Semantic index busy for more than {self.lock_timeout}s")
        try:
            yield
        finally:
            self._lock.release()

    @property
    def is_ready(self) -> bool:
        return self._index is not None

    @property
    def index(self) -> Optional[IVectorIndex]:
        return self._index

    # Internal, lock already held

    def _initialize(self) -> None:
        dimension = self.embedding_provider.get_dimension()
        try:
            index = self.index_factory(dimension)
        except (ValueError, RuntimeError, MemoryError) as e:
            logger.log_operation("vector.initialize", "failed", {"error": str(e)})
            raise IndexNotInitializedError(f"Failed to allocate vector index: {e}") from e

        if index.dimension != dimension:
            raise IndexNotInitializedError(
                f"Index dimension {index.dimension} does not match embedding dimension {dimension}"
            )

        self._index = index
        logger.log_operation("vector.initialize", "success", {"dimension": dimension, "capacity": index.capacity})

    def _add(self, note: Note) -> int:
        if self._index is None:
            self._initialize()

        vector = self.embedding_provider.embed_text(note.text)
        internal_id = self.next_id
        self._index.insert(vector, internal_id)

        self.note_to_id[note.id] = internal_id
        self.id_to_note[internal_id] = note.id
        self.next_id += 1
        return internal_id

    def _remove(self, note: Note) -> int:
        internal_id = self.note_to_id.pop(note.id, None)
        if internal_id is None:
            raise NotFoundError(note.id)
        # Older vectors from repeated adds map here too
        for stale_id in [i for i, note_id in self.id_to_note.items() if note_id == note.id]:
            del self.id_to_note[stale_id]
        return internal_id

    # Public operations

    def add(self, note: Note) -> int:
        """Index a note under a fresh internal id and return that id."""
        with self._locked():
            internal_id = self._add(note)
        logger.log_vector_operation("add", note.id, {"internal_id": internal_id})
        return internal_id

    def update(self, note: Note) -> int:
        """Re-index a note; its previous vector, if any, becomes a tombstone.

        Raises:
            IndexCapacityError: if the index is full. The note keeps its
                current vector and stays searchable.
        """
        with self._locked():
            if self._index is not None and self._index.is_full:
                raise IndexCapacityError(f"Vector index is at capacity ({self._index.capacity} vectors)")
            try:
                old_id = self._remove(note)
            except NotFoundError:
                # Never indexed, nothing to tombstone
                old_id = None
            internal_id = self._add(note)
        logger.log_vector_operation("update", note.id, {"internal_id": internal_id, "tombstoned": old_id})
        return internal_id

    def remove(self, note: Note) -> None:
        """Hide a note from search results.

        Raises:
            NotFoundError: if the note is not live in the index.
        """
        with self._locked():
            try:
                internal_id = self._remove(note)
            except NotFoundError:
                logger.log_vector_operation("remove", note.id, status="not_found")
                raise
        logger.log_vector_operation("remove", note.id, {"tombstoned": internal_id})

    def search_results(self, query: str, k: int, distance_cutoff: Optional[float] = None) -> List[QueryResult]:
        """
        Return live hits for ``query`` with their cosine distances.

        Exactly ``k`` neighbours are requested from the index and then
        filtered: hits farther than ``distance_cutoff`` and tombstoned
        vectors are dropped without being replaced, so fewer than ``k``
        results may come back.
        """
        with self._locked():
            if self._index is None:
                return []

            vector = self.embedding_provider.embed_text(query)
            neighbors = self._index.search(vector, k, INDEX_EF_SEARCH)

            results = []
            skipped = 0
            for internal_id, distance in neighbors:
                if distance_cutoff is not None and distance > distance_cutoff:
                    skipped += 1
                    continue
                note_id = self.id_to_note.get(internal_id)
                if note_id is None:
                    skipped += 1
                    continue
                results.append(QueryResult(id=note_id, score=distance, metadata={"internal_id": internal_id}))

        logger.log_search(query, k, len(results), {"skipped": skipped, "cutoff": distance_cutoff})
        return results

    def search(self, query: str, k: int, distance_cutoff: Optional[float] = None) -> List[str]:
        """Return ids of the notes closest to ``query``, nearest first."""
        return [result.id for result in self.search_results(query, k, distance_cutoff)]

    def rebuild(self, notes: Iterable[Note]) -> int:
        """
        Replace the index with a fresh one holding exactly ``notes``.

        Internal ids restart at zero and follow the order of ``notes``.
        The caller supplies the authoritative set of live notes.

        Returns:
            Number of notes indexed
        """
        with self._locked():
            dropped = len(self._index) if self._index is not None else 0
            self._index = None
            self.note_to_id.clear()
            self.id_to_note.clear()
            self.next_id = 0

            self._initialize()
            for note in notes:
                self._add(note)
            count = self.next_id

        logger.log_operation("vector.rebuild", "success", {"indexed": count, "dropped": dropped})
        return count

    def reset(self) -> None:
        """Drop the index and mappings, returning to the uninitialized state."""
        with self._locked():
            self._index = None
            self.note_to_id.clear()
            self.id_to_note.clear()
            self.next_id = 0

    # Introspection

    def internal_id(self, note_id: str) -> Optional[int]:
        """Internal id currently assigned to a live note, or None."""
        with self._locked():
            return self.note_to_id.get(note_id)

    @property
    def live_count(self) -> int:
        with self._locked():
            return len(self.note_to_id)

    @property
    def tombstone_count(self) -> int:
        """Vectors still in the index that no live note maps to."""
        with self._locked():
            if self._index is None:
                return 0
            return len(self._index) - len(self.id_to_note)

    def __len__(self) -> int:
        return self.live_count

    def __contains__(self, note_id: str) -> bool:
        return self.internal_id(note_id) is not None

    def health(self) -> Dict[str, Any]:
        """
        Return semantic index health information.

        Returns:
            Health status dict with sizes, capacity and dimension
        """
        try:
            with self._locked():
                indexed = len(self._index) if self._index is not None else 0
                capacity = self._index.capacity if self._index is not None else 0
                return {
                    'status': 'ready' if self._index is not None else 'uninitialized',
                    'live': len(self.note_to_id),
                    'indexed': indexed,
                    'tombstones': indexed - len(self.id_to_note),
                    'capacity': capacity,
                    'dimension': self.embedding_provider.get_dimension(),
                    'next_id': self.next_id,
                    'last_checked': datetime.now().isoformat()
                }
        except IndexUnavailableError as e:
            return {
                'status': 'unavailable',
                'error': str(e),
                'last_checked': datetime.now().isoformat()
            }


_manager: Optional[SemanticIndexManager] = None
_manager_lock = threading.Lock()


def get_semantic_index() -> SemanticIndexManager:
    """Return the process-wide manager, creating it on first use."""
    global _manager

    if _manager is not None:
        return _manager

    with _manager_lock:
        if _manager is None:
            _manager = SemanticIndexManager()
        return _manager


def reset_semantic_index() -> None:
    """Forget the process-wide manager; the next call creates a new one."""
    global _manager

    with _manager_lock:
        _manager = None
