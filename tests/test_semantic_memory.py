"""
Tests for the semantic index manager: id mapping, tombstones, rebuild and search filtering.
"""

import threading

import numpy as np
import pytest

from src.vector import (
    BruteForceVectorIndex,
    CharacterHashEmbedding,
    FaissHnswIndex,
    IndexCapacityError,
    IndexNotInitializedError,
    IndexUnavailableError,
    IVectorIndex,
    Note,
    NotFoundError,
    SemanticIndexManager,
    get_semantic_index,
    reset_semantic_index,
)


def faiss_factory(dimension):
    return FaissHnswIndex(dimension=dimension, max_elements=100)


def brute_force_factory(dimension):
    return BruteForceVectorIndex(dimension=dimension, max_elements=100)


@pytest.fixture(params=[faiss_factory, brute_force_factory], ids=["faiss", "memory"])
def manager(request):
    """Manager over each index implementation."""
    return SemanticIndexManager(index_factory=request.param)


class CannedIndex(IVectorIndex):
    """Index stub returning fixed neighbours, to pin the manager's filtering."""

    def __init__(self, dimension, neighbors):
        self.dimension = dimension
        self.max_elements = 100
        self.neighbors = neighbors
        self.inserted = []
        self.requested_k = None

    def insert(self, vector, internal_id):
        self.inserted.append(internal_id)

    def search(self, vector, k, search_breadth=50):
        self.requested_k = k
        return self.neighbors[:k]

    def __len__(self):
        return len(self.inserted)


NOTE_A = Note(id="a", title="hello", content="world")
NOTE_B = Note(id="b", title="grocery list", content="milk eggs bread")
NOTE_C = Note(id="c", title="meeting notes", content="quarterly planning review")


def test_search_before_initialization_is_empty():
    manager = SemanticIndexManager(index_factory=brute_force_factory)

    assert not manager.is_ready
    assert manager.search("anything", 5) == []
    assert manager.search("", 5, 0.5) == []
    assert not manager.is_ready


def test_add_initializes_lazily(manager):
    assert not manager.is_ready

    manager.add(NOTE_A)

    assert manager.is_ready
    assert manager.index.dimension == 128
    assert len(manager) == 1


def test_add_then_search(manager):
    manager.add(NOTE_A)

    assert manager.search("hello world", 1) == ["a"]


def test_search_ranks_matching_note_first(manager):
    for note in (NOTE_A, NOTE_B, NOTE_C):
        manager.add(note)

    assert manager.search("grocery list milk eggs bread", 1) == ["b"]
    assert manager.search("meeting notes quarterly planning review", 3)[0] == "c"


def test_search_results_carry_distances(manager):
    for note in (NOTE_A, NOTE_B, NOTE_C):
        manager.add(note)

    results = manager.search_results("hello world", 3)

    assert results[0].id == "a"
    assert results[0].score == pytest.approx(0.0, abs=1e-5)
    assert results[0].metadata["internal_id"] == 0
    scores = [result.score for result in results]
    assert scores == sorted(scores)


def test_internal_ids_are_sequential(manager):
    assert manager.add(NOTE_A) == 0
    assert manager.add(NOTE_B) == 1
    assert manager.add(NOTE_C) == 2
    assert manager.internal_id("b") == 1
    assert manager.id_to_note == {0: "a", 1: "b", 2: "c"}


def test_remove_hides_note(manager):
    manager.add(NOTE_A)
    manager.add(NOTE_B)

    manager.remove(NOTE_A)

    assert "a" not in manager.search(NOTE_A.text, 5)
    assert "a" not in manager
    # The vector is still physically in the index
    assert len(manager.index) == 2
    assert manager.tombstone_count == 1
    assert manager.live_count == 1


def test_remove_unknown_note_raises(manager):
    with pytest.raises(NotFoundError):
        manager.remove(NOTE_A)


def test_remove_twice_raises(manager):
    manager.add(NOTE_A)
    manager.remove(NOTE_A)

    with pytest.raises(NotFoundError) as exc_info:
        manager.remove(NOTE_A)
    assert exc_info.value.note_id == "a"


def test_update_replaces_vector(manager):
    original = Note(id="doc", title="recipe", content="chocolate cake with cherries")
    revised = Note(id="doc", title="recipe", content="lentil soup with cumin")
    manager.add(original)
    manager.add(NOTE_B)
    old_id = manager.internal_id("doc")

    before = manager.search_results(original.text, 5)
    before_ids = [hit.id for hit in before]
    before_score = before[before_ids.index("doc")].score

    new_id = manager.update(revised)

    assert new_id != old_id
    assert manager.internal_id("doc") == new_id
    assert manager.live_count == 2
    assert manager.tombstone_count == 1
    assert manager.search(revised.text, 1) == ["doc"]

    # The old text no longer finds its own vector, only the new one
    hits = manager.search_results(original.text, 5)
    hit_ids = [hit.id for hit in hits]
    doc_hit = hits[hit_ids.index("doc")]
    assert doc_hit.metadata["internal_id"] == new_id
    assert old_id not in [hit.metadata["internal_id"] for hit in hits]
    assert before_score == pytest.approx(0.0, abs=1e-5)
    assert doc_hit.score > before_score + 1e-3
    assert hit_ids.index("doc") >= before_ids.index("doc")


def test_update_of_unindexed_note_adds_it(manager):
    manager.update(NOTE_A)

    assert manager.internal_id("a") == 0
    assert manager.tombstone_count == 0
    assert manager.search("hello world", 1) == ["a"]


def test_adding_same_id_twice_keeps_both_vectors(manager):
    """add is not idempotent: the forward mapping follows the latest internal id."""
    manager.add(NOTE_A)
    manager.add(NOTE_A)

    assert manager.internal_id("a") == 1
    assert manager.live_count == 1
    assert len(manager.index) == 2
    assert manager.id_to_note == {0: "a", 1: "a"}


def test_remove_after_repeated_add_hides_every_vector(manager):
    manager.add(NOTE_A)
    manager.add(NOTE_A)
    manager.add(NOTE_B)

    manager.remove(NOTE_A)

    assert "a" not in manager.search("hello world", 5)
    assert [hit.metadata["internal_id"] for hit in manager.search_results("hello world", 5)] == [2]
    assert manager.id_to_note == {2: "b"}
    assert manager.live_count == 1
    assert manager.tombstone_count == 2


def test_update_after_repeated_add_leaves_one_live_vector(manager):
    manager.add(NOTE_A)
    manager.add(NOTE_A)

    new_id = manager.update(NOTE_A)

    assert new_id == 2
    assert manager.id_to_note == {2: "a"}
    assert manager.tombstone_count == 2
    assert [hit.metadata["internal_id"] for hit in manager.search_results("hello world", 5)] == [2]


def test_rebuild_reassigns_dense_ids(manager):
    notes = [Note(id=f"n{i}", title=f"note {i}", content="body " * i) for i in range(5)]
    for note in notes:
        manager.add(note)
    manager.remove(notes[1])
    manager.remove(notes[3])

    live = [notes[0], notes[2], notes[4]]
    assert manager.rebuild(live) == 3

    assert [manager.internal_id(note.id) for note in live] == [0, 1, 2]
    assert manager.next_id == 3
    assert len(manager.index) == 3
    assert manager.tombstone_count == 0
    assert manager.search(notes[2].text, 1) == ["n2"]


def test_rebuild_with_no_notes_leaves_empty_ready_index(manager):
    manager.add(NOTE_A)

    assert manager.rebuild([]) == 0

    assert manager.is_ready
    assert len(manager.index) == 0
    assert manager.search("hello world", 5) == []


def test_cutoff_filters_and_is_monotone(manager):
    for note in (NOTE_A, NOTE_B, NOTE_C):
        manager.add(note)
    query = "hello planning"
    all_hits = manager.search_results(query, 3)

    previous = []
    for cutoff in (0.0, 0.1, 0.3, 0.5, 0.8, 1.0, 2.0):
        hits = manager.search_results(query, 3, cutoff)
        assert all(hit.score <= cutoff for hit in hits)
        ids = [hit.id for hit in hits]
        assert set(previous) <= set(ids)
        previous = ids

    assert previous == [hit.id for hit in all_hits]


def test_cutoff_is_inclusive_and_filtered_results_are_not_backfilled():
    neighbors = [(0, 0.1), (1, 0.25), (2, 0.4), (3, 0.5)]
    index = CannedIndex(128, neighbors)
    manager = SemanticIndexManager(index_factory=lambda dimension: index)
    for note_id in "wxyz":
        manager.add(Note(id=note_id, title=note_id))
    manager.remove(Note(id="x"))

    # Tombstone 1 is dropped; 0.25 is not replaced by a further candidate
    assert manager.search("q", 3) == ["w", "y"]
    assert index.requested_k == 3

    # Equal distance passes, larger is skipped
    assert manager.search("q", 4, 0.4) == ["w", "y"]
    assert manager.search("q", 4, 0.39) == ["w"]


def test_allocation_failure_leaves_manager_uninitialized():
    def failing_factory(dimension):
        raise ValueError("out of memory")

    manager = SemanticIndexManager(index_factory=failing_factory)

    with pytest.raises(IndexNotInitializedError):
        manager.add(NOTE_A)
    assert not manager.is_ready
    assert manager.next_id == 0
    assert manager.search("hello", 1) == []

    with pytest.raises(IndexNotInitializedError):
        manager.rebuild([NOTE_A])
    assert not manager.is_ready
    assert manager.note_to_id == {}


def test_dimension_mismatch_is_rejected():
    manager = SemanticIndexManager(
        embedding_provider=CharacterHashEmbedding(dimension=64),
        index_factory=lambda dimension: BruteForceVectorIndex(dimension=128, max_elements=10),
    )

    with pytest.raises(IndexNotInitializedError):
        manager.add(NOTE_A)


def test_capacity_is_reclaimed_by_rebuild():
    manager = SemanticIndexManager(index_factory=lambda dimension: BruteForceVectorIndex(dimension, max_elements=2))
    manager.add(NOTE_A)
    manager.add(NOTE_B)
    manager.remove(NOTE_B)

    # The tombstone still occupies a slot
    with pytest.raises(IndexCapacityError):
        manager.add(NOTE_C)
    assert "c" not in manager
    assert manager.next_id == 2

    manager.rebuild([NOTE_A])
    manager.add(NOTE_C)
    assert manager.internal_id("c") == 1


def test_update_on_full_index_keeps_current_vector():
    manager = SemanticIndexManager(index_factory=lambda dimension: BruteForceVectorIndex(dimension, max_elements=2))
    manager.add(NOTE_A)
    manager.add(NOTE_B)

    revised = Note(id="a", title="hello", content="there")
    with pytest.raises(IndexCapacityError):
        manager.update(revised)

    assert manager.internal_id("a") == 0
    assert manager.id_to_note == {0: "a", 1: "b"}
    assert manager.next_id == 2
    assert manager.tombstone_count == 0
    assert manager.search("hello world", 1) == ["a"]


def test_custom_embedding_provider_is_used():
    class ConstantEmbedding(CharacterHashEmbedding):
        def embed_text(self, text):
            vector = np.zeros(self.dimension, dtype=np.float32)
            vector[0] = 1.0
            return vector

    manager = SemanticIndexManager(
        embedding_provider=ConstantEmbedding(dimension=16),
        index_factory=lambda dimension: BruteForceVectorIndex(dimension, max_elements=10),
    )
    manager.add(NOTE_A)

    assert manager.index.dimension == 16
    assert manager.search("completely unrelated", 1) == ["a"]


def test_lock_timeout_raises_unavailable():
    manager = SemanticIndexManager(index_factory=brute_force_factory, lock_timeout=0.01)
    manager.add(NOTE_A)

    manager._lock.acquire()
    try:
        with pytest.raises(IndexUnavailableError):
            manager.search("hello", 1)
        with pytest.raises(IndexUnavailableError):
            manager.add(NOTE_B)
        assert manager.health()["status"] == "unavailable"
    finally:
        manager._lock.release()

    assert manager.search("hello world", 1) == ["a"]


def test_lock_released_after_error():
    manager = SemanticIndexManager(index_factory=brute_force_factory, lock_timeout=0.01)

    with pytest.raises(NotFoundError):
        manager.remove(NOTE_A)

    manager.add(NOTE_A)
    assert manager.live_count == 1


def test_concurrent_adds_get_unique_ids():
    manager = SemanticIndexManager(index_factory=lambda dimension: BruteForceVectorIndex(dimension, max_elements=1000))

    def worker(offset):
        for i in range(50):
            manager.add(Note(id=f"{offset}-{i}", title="t", content=str(i)))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert manager.live_count == 200
    assert sorted(manager.id_to_note) == list(range(200))


def test_health_reports_sizes(manager):
    assert manager.health()["status"] == "uninitialized"

    manager.add(NOTE_A)
    manager.add(NOTE_B)
    manager.remove(NOTE_A)
    health = manager.health()

    assert health["status"] == "ready"
    assert health["live"] == 1
    assert health["indexed"] == 2
    assert health["tombstones"] == 1
    assert health["capacity"] == 100
    assert health["dimension"] == 128


def test_reset_returns_to_uninitialized(manager):
    manager.add(NOTE_A)
    manager.reset()

    assert not manager.is_ready
    assert manager.search("hello world", 1) == []
    assert manager.add(NOTE_B) == 0


def test_process_wide_manager_is_shared():
    reset_semantic_index()
    try:
        first = get_semantic_index()
        assert get_semantic_index() is first

        reset_semantic_index()
        assert get_semantic_index() is not first
    finally:
        reset_semantic_index()
