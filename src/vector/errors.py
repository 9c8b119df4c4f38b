"""Errors raised by the semantic index."""


class EmbeddingIndexError(Exception):
    """Base class for semantic index failures."""


class NotFoundError(EmbeddingIndexError):
    """The note is not live in the index."""

    def __init__(self, note_id: str):
        super().__init__(f"Note not found in semantic index: {note_id}")
        self.note_id = note_id


class IndexNotInitializedError(EmbeddingIndexError):
    """The vector index could not be allocated."""


class IndexCapacityError(EmbeddingIndexError):
    """The vector index is full. Rebuild it to reclaim tombstoned slots."""


class IndexUnavailableError(EmbeddingIndexError):
    """The index lock could not be acquired; semantic search is temporarily unavailable."""
