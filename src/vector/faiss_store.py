"""
FAISS HNSW vector index for semantic note search.
Graph indexes cannot cheaply drop nodes, so this index is insert-only; the manager tombstones instead.
"""

from typing import List, Tuple
import logging

import faiss
import numpy as np

from ..core.config import (
    EMBED_DIM,
    INDEX_EF_CONSTRUCTION,
    INDEX_EF_SEARCH,
    INDEX_MAX_ELEMENTS,
    INDEX_MAX_LAYERS,
    INDEX_MAX_NEIGHBORS,
)
from .index import IVectorIndex

logger = logging.getLogger(__name__)


class FaissHnswIndex(IVectorIndex):
    """HNSW graph index backed by FAISS, scored by cosine distance."""

    def __init__(
        self,
        dimension: int = EMBED_DIM,
        max_elements: int = INDEX_MAX_ELEMENTS,
        max_neighbors: int = INDEX_MAX_NEIGHBORS,
        max_layers: int = INDEX_MAX_LAYERS,
        ef_construction: int = INDEX_EF_CONSTRUCTION,
    ):
        """
        Allocate an empty HNSW index.

        Args:
            dimension: Width of every inserted vector
            max_elements: Maximum number of vectors, tombstones included
            max_neighbors: Graph links per node (HNSW ``M``)
            max_layers: Upper bound on graph levels
            ef_construction: Candidate list size while linking new nodes
        """
        if dimension < 1 or max_elements < 1:
            raise ValueError("dimension and max_elements must be positive")
        if max_neighbors < 2:
            raise ValueError(f"max_neighbors must be >= 2, got {max_neighbors}")
        if max_layers < 1:
            raise ValueError(f"max_layers must be >= 1, got {max_layers}")
        if ef_construction < 1:
            raise ValueError(f"ef_construction must be >= 1, got {ef_construction}")

        self.dimension = dimension
        self.max_elements = max_elements
        self.max_neighbors = max_neighbors
        self.max_layers = max_layers
        self.ef_construction = ef_construction

        # Inner product on unit vectors is cosine similarity
        self._hnsw = faiss.IndexHNSWFlat(dimension, max_neighbors, faiss.METRIC_INNER_PRODUCT)
        self._hnsw.hnsw.efConstruction = ef_construction

        # FAISS draws node levels from a distribution derived from M
        levels = len(faiss.vector_to_array(self._hnsw.hnsw.assign_probas))
        if levels > max_layers:
            raise ValueError(f"HNSW with M={max_neighbors} needs {levels} levels, more than max_layers={max_layers}")

        self.index = faiss.IndexIDMap(self._hnsw)
        self._known_ids = set()

        logger.debug(
            "Allocated HNSW index dim=%d capacity=%d M=%d efConstruction=%d levels=%d",
            dimension, max_elements, max_neighbors, ef_construction, levels,
        )

    def insert(self, vector: np.ndarray, internal_id: int) -> None:
        """Add a single vector under ``internal_id``."""
        vector = self._prepare(vector, internal_id)
        if internal_id in self._known_ids:
            raise ValueError(f"Internal id {internal_id} already present in index")

        self.index.add_with_ids(vector.reshape(1, -1), np.array([internal_id], dtype=np.int64))
        self._known_ids.add(internal_id)

    def search(self, vector: np.ndarray, k: int, search_breadth: int = INDEX_EF_SEARCH) -> List[Tuple[int, float]]:
        """Return up to k nearest (internal_id, cosine_distance) pairs, ascending distance."""
        if k <= 0 or not self.index.ntotal:
            return []

        query = np.asarray(vector, dtype=np.float32).reshape(1, -1)
        if query.shape[1] != self.dimension:
            raise ValueError(f"Query dimension {query.shape[1]} does not match expected dimension {self.dimension}")

        k = min(k, self.index.ntotal)
        self._hnsw.hnsw.efSearch = max(search_breadth, k)
        scores, labels = self.index.search(query, k)

        neighbors = []
        for score, label in zip(scores[0], labels[0]):
            if label < 0:  # fewer than k reachable nodes
                continue
            neighbors.append((int(label), max(0.0, 1.0 - float(score))))

        neighbors.sort(key=lambda pair: (pair[1], pair[0]))
        return neighbors

    def __len__(self) -> int:
        return int(self.index.ntotal)
