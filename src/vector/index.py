"""
Vector index interface for semantic note search.
Indexes are insert-only: vectors are never removed, only shadowed by the manager's id mappings.
"""

from abc import ABC, abstractmethod
from typing import List, Tuple
import numpy as np

from ..core.config import INDEX_EF_SEARCH
from .errors import IndexCapacityError


class IVectorIndex(ABC):
    """Abstract interface for an insert-only nearest neighbour index."""

    dimension: int
    max_elements: int

    @abstractmethod
    def insert(self, vector: np.ndarray, internal_id: int) -> None:
        """Add a vector under a caller-chosen unique internal id."""
        pass

    @abstractmethod
    def search(self, vector: np.ndarray, k: int, search_breadth: int = INDEX_EF_SEARCH) -> List[Tuple[int, float]]:
        """Return up to k (internal_id, cosine_distance) pairs, closest first."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass

    @property
    def capacity(self) -> int:
        return self.max_elements

    @property
    def is_full(self) -> bool:
        return len(self) >= self.max_elements

    def _prepare(self, vector, internal_id: int) -> np.ndarray:
        """Validate an insert and return the vector as a float32 row."""
        vector = np.asarray(vector, dtype=np.float32).reshape(-1)
        if vector.shape[0] != self.dimension:
            raise ValueError(f"Vector dimension {vector.shape[0]} does not match expected dimension {self.dimension}")
        if internal_id < 0:
            raise ValueError(f"Internal id must be non-negative, got {internal_id}")
        if self.is_full:
            raise IndexCapacityError(f"Vector index is at capacity ({self.max_elements} vectors)")
        return vector


class BruteForceVectorIndex(IVectorIndex):
    """Exact in-memory index using cosine distance over all stored vectors."""

    def __init__(self, dimension: int, max_elements: int):
        if dimension < 1 or max_elements < 1:
            raise ValueError("dimension and max_elements must be positive")
        self.dimension = dimension
        self.max_elements = max_elements
        self._ids = []      # row -> internal id
        self._rows = []     # row -> normalized vector
        self._known = set()

    def insert(self, vector: np.ndarray, internal_id: int) -> None:
        vector = self._prepare(vector, internal_id)
        if internal_id in self._known:
            raise ValueError(f"Internal id {internal_id} already present in index")

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm

        self._ids.append(internal_id)
        self._rows.append(vector)
        self._known.add(internal_id)

    def search(self, vector: np.ndarray, k: int, search_breadth: int = INDEX_EF_SEARCH) -> List[Tuple[int, float]]:
        # search_breadth has no effect on an exact scan
        if k <= 0 or not self._rows:
            return []

        query = np.asarray(vector, dtype=np.float32).reshape(-1)
        norm = np.linalg.norm(query)
        if norm > 0:
            query = query / norm

        similarities = np.vstack(self._rows) @ query
        distances = np.clip(1.0 - similarities.astype(np.float64), 0.0, 2.0)

        # Stable sort keeps insertion order among equal distances
        order = np.argsort(distances, kind="stable")[:k]
        return [(self._ids[row], float(distances[row])) for row in order]

    def __len__(self) -> int:
        return len(self._rows)
