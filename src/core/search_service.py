"""
Note search entry points.
Semantic search over the vector index, degrading to plain substring search when the index is unavailable.
"""

from typing import Iterable, List, Optional
import logging

from .config import SEARCH_TOP_K, semantic_search_enabled
from ..vector.errors import IndexUnavailableError, NotFoundError
from ..vector.semantic_memory import SemanticIndexManager, get_semantic_index
from ..vector.types import Note

logger = logging.getLogger(__name__)


def text_search(query: str, notes: Iterable[Note]) -> List[Note]:
    """
    Case-insensitive substring search over note titles and contents.

    An empty query matches every note.
    """
    notes = list(notes)
    if not query:
        return notes

    needle = query.lower()
    return [note for note in notes if needle in note.title.lower() or needle in note.content.lower()]


def semantic_search(
    query: str,
    notes: Iterable[Note],
    top_k: int = SEARCH_TOP_K,
    distance_cutoff: Optional[float] = None,
    _manager: Optional[SemanticIndexManager] = None,
) -> List[Note]:
    """
    Find notes similar to ``query`` using the semantic index.

    Args:
        query: The search query string
        notes: Current live notes, used to resolve ids and for the fallback path
        top_k: Neighbours requested from the index (results may be fewer after filtering)
        distance_cutoff: Optional maximum cosine distance
        _manager: Optional manager for testing

    Returns:
        Matching notes, nearest first. Falls back to ``text_search`` when
        semantic search is disabled, the query is blank, or the index is busy.
    """
    notes = list(notes)
    if not semantic_search_enabled() or not query.strip():
        return text_search(query, notes)

    manager = _manager if _manager is not None else get_semantic_index()
    try:
        ids = manager.search(query, top_k, distance_cutoff)
    except IndexUnavailableError as e:
        logger.warning("Semantic search unavailable, using text search: %s", e)
        return text_search(query, notes)

    by_id = {note.id: note for note in notes}
    results = []
    for note_id in ids:
        note = by_id.get(note_id)
        if note is None:
            # Indexed but no longer in the store; a rebuild will drop it
            logger.debug("Semantic hit %s has no matching note", note_id)
            continue
        results.append(note)
    return results


def sync_note(manager: SemanticIndexManager, note: Note, action: str) -> None:
    """
    Apply a note store mutation to the semantic index.

    Args:
        manager: Index manager to update
        note: The note that changed
        action: One of ``created``, ``updated`` or ``deleted``
    """
    if action == "created":
        manager.add(note)
    elif action == "updated":
        manager.update(note)
    elif action == "deleted":
        try:
            manager.remove(note)
        except NotFoundError:
            logger.info("Deleted note %s was not in the semantic index", note.id)
    else:
        raise ValueError(f"Unknown note action: {action}")
