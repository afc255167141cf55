# tests/test_persister.py
import threading
from concurrent.futures import ThreadPoolExecutor

from modules.jobs_tracker.lib.db import ConflictError
from modules.jobs_tracker.lib.persister import DedupPersister


def test_only_unseen_postings_are_stored(posting_store, make_posting):
    persister = DedupPersister(posting_store)
    first = persister.absorb_batch([make_posting("LinkedIn-1"), make_posting("LinkedIn-2")])
    assert [p.external_id for p in first] == ["LinkedIn-1", "LinkedIn-2"]
    assert all(p.id is not None for p in first)

    second = persister.absorb_batch([make_posting("LinkedIn-2"), make_posting("LinkedIn-3")])
    assert [p.external_id for p in second] == ["LinkedIn-3"]
    assert posting_store.count() == 3


def test_duplicates_within_one_batch_store_once(posting_store, make_posting):
    persister = DedupPersister(posting_store)
    out = persister.absorb_batch([make_posting("X"), make_posting("X", title="copy"), make_posting("Y")])
    assert [p.external_id for p in out] == ["X", "Y"]
    assert out[0].title == "Python Developer"


def test_absorbing_same_batch_twice_is_idempotent(posting_store, make_posting):
    persister = DedupPersister(posting_store)
    batch = [make_posting(f"LinkedIn-{i}") for i in range(5)]
    assert len(persister.absorb_batch(batch)) == 5
    assert persister.absorb_batch(batch) == []
    assert posting_store.count() == 5


def test_concurrent_same_external_id_stores_exactly_one(posting_store, make_posting):
    persister = DedupPersister(posting_store)
    start = threading.Barrier(8)

    def worker(i):
        start.wait()
        return persister.absorb_batch([make_posting("Shared-1", title=f"worker {i}")])

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(worker, range(8)))

    stored = [p for batch in results for p in batch]
    assert len(stored) == 1
    assert posting_store.count() == 1


class _RacingStore:
    """Lookup says 'unknown' but the UNIQUE index disagrees (another process won)."""

    def __init__(self):
        self.saved = []

    def find_by_external_id(self, external_id):
        return None

    def save(self, posting):
        if posting.external_id == "taken":
            raise ConflictError(posting.external_id)
        self.saved.append(posting)
        return posting


def test_conflict_on_save_counts_as_already_stored(make_posting):
    store = _RacingStore()
    out = DedupPersister(store).absorb_batch([make_posting("taken"), make_posting("free")])
    assert [p.external_id for p in out] == ["free"]
    assert [p.external_id for p in store.saved] == ["free"]
