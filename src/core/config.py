"""
Semantic search configuration.
Index construction parameters are fixed constants; feature flags come from the environment.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Vector generator width. Every vector inserted into the index has exactly this many components.
EMBED_DIM = 128

# HNSW construction parameters (fixed for the lifetime of an index; rebuild to change)
INDEX_MAX_ELEMENTS = 10000
INDEX_MAX_NEIGHBORS = 16
INDEX_MAX_LAYERS = 16
INDEX_EF_CONSTRUCTION = 200

# Candidate list size used at query time
INDEX_EF_SEARCH = 50

# Runtime switches
VECTOR_PROVIDER = os.getenv("VECTOR_PROVIDER", "faiss")  # faiss|memory
LOCK_TIMEOUT_SEC = float(os.getenv("LOCK_TIMEOUT_SEC", "5"))
SEARCH_TOP_K = int(os.getenv("SEARCH_TOP_K", "10"))
NOTES_DIR = os.getenv("NOTES_DIR", str(Path.home() / ".minimal-notes" / "notes"))


def get_vector_index(dimension: int = EMBED_DIM):
    """Allocate an empty vector index of the configured provider."""
    if VECTOR_PROVIDER == "memory":
        from src.vector.index import BruteForceVectorIndex
        return BruteForceVectorIndex(dimension=dimension, max_elements=INDEX_MAX_ELEMENTS)

    from src.vector.faiss_store import FaissHnswIndex
    return FaissHnswIndex(
        dimension=dimension,
        max_elements=INDEX_MAX_ELEMENTS,
        max_neighbors=INDEX_MAX_NEIGHBORS,
        max_layers=INDEX_MAX_LAYERS,
        ef_construction=INDEX_EF_CONSTRUCTION,
    )


def get_embedding_provider():
    """Get the configured embedding provider."""
    from src.vector.embeddings import CharacterHashEmbedding
    return CharacterHashEmbedding(dimension=EMBED_DIM)


def semantic_search_enabled():
    """Check if semantic search is enabled."""
    return os.getenv("SEMANTIC_SEARCH_ENABLED", "true").lower() == "true"


def validate_index_config():
    """Validate index configuration and return any issues."""
    issues = []

    if VECTOR_PROVIDER not in ["faiss", "memory"]:
        issues.append(f"Invalid VECTOR_PROVIDER: {VECTOR_PROVIDER}")

    if EMBED_DIM < 1:
        issues.append("EMBED_DIM must be >= 1")

    if INDEX_MAX_ELEMENTS < 1:
        issues.append("INDEX_MAX_ELEMENTS must be >= 1")

    if INDEX_MAX_NEIGHBORS < 2:
        issues.append("INDEX_MAX_NEIGHBORS must be >= 2")

    if INDEX_MAX_LAYERS < 1:
        issues.append("INDEX_MAX_LAYERS must be >= 1")

    if INDEX_EF_CONSTRUCTION < INDEX_MAX_NEIGHBORS:
        issues.append("INDEX_EF_CONSTRUCTION should be >= INDEX_MAX_NEIGHBORS")

    if INDEX_EF_SEARCH < 1:
        issues.append("INDEX_EF_SEARCH must be >= 1")

    if LOCK_TIMEOUT_SEC <= 0:
        issues.append("LOCK_TIMEOUT_SEC must be > 0")

    if SEARCH_TOP_K < 1:
        issues.append("SEARCH_TOP_K must be >= 1")

    return issues
