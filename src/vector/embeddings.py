"""
Character-hash embeddings for semantic note search.
Placeholder generator: any provider returning fixed-width unit (or zero) vectors can replace it.
"""

from abc import ABC, abstractmethod
import numpy as np

from ..core.config import EMBED_DIM


def generate_embedding(text: str, dimension: int = EMBED_DIM) -> np.ndarray:
    """Build a position-weighted bag-of-characters vector for ``text``.

    Each character at position ``i`` adds ``1 / (i + 1)`` to bucket
    ``ord(char) % dimension``, so early characters weigh more than later
    repeats. The result is scaled to unit length; empty text yields the
    all-zero vector.
    """
    embedding = np.zeros(dimension, dtype=np.float64)
    if text:
        buckets = np.fromiter((ord(ch) for ch in text), dtype=np.int64, count=len(text)) % dimension
        weights = 1.0 / np.arange(1, len(text) + 1, dtype=np.float64)
        np.add.at(embedding, buckets, weights)

    norm = np.linalg.norm(embedding)
    if norm > 0:
        embedding /= norm
    return embedding.astype(np.float32)


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    def embed_text(self, text: str) -> np.ndarray:
        """Generate embedding vector for given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass


class CharacterHashEmbedding(IEmbeddingProvider):
    """Deterministic character-hash embedding provider.

    Cheap and dependency-light; order-sensitive enough to tell notes apart
    in demos and tests without loading a model.
    """

    def __init__(self, dimension: int = EMBED_DIM):
        if dimension < 1:
            raise ValueError(f"Embedding dimension must be positive, got {dimension}")
        self.dimension = dimension

    def embed_text(self, text: str) -> np.ndarray:
        """Generate deterministic embedding vector for text."""
        return generate_embedding(text, self.dimension)

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension
