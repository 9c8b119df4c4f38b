"""
Semantic search core for notes.
Vector overlay over the canonical note store; the store remains the source of truth.
"""

# Package initialization for vector module
from .index import IVectorIndex, BruteForceVectorIndex
from .faiss_store import FaissHnswIndex
from .types import Note, QueryResult
from .embeddings import IEmbeddingProvider, CharacterHashEmbedding, generate_embedding
from .errors import (
    EmbeddingIndexError,
    NotFoundError,
    IndexNotInitializedError,
    IndexCapacityError,
    IndexUnavailableError,
)
from .semantic_memory import SemanticIndexManager, get_semantic_index, reset_semantic_index

__all__ = [
    'IVectorIndex',
    'BruteForceVectorIndex',
    'FaissHnswIndex',
    'Note',
    'QueryResult',
    'IEmbeddingProvider',
    'CharacterHashEmbedding',
    'generate_embedding',
    'EmbeddingIndexError',
    'NotFoundError',
    'IndexNotInitializedError',
    'IndexCapacityError',
    'IndexUnavailableError',
    'SemanticIndexManager',
    'get_semantic_index',
    'reset_semantic_index',
]
