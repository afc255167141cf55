from __future__ import annotations

import threading
import zlib
from collections.abc import Iterable
from typing import Protocol

from . import logging_bridge
from .db import ConflictError
from .models import Posting

_LOCK_STRIPES = 64


class PostingStore(Protocol):
    def find_by_external_id(self, external_id: str) -> Posting | None: ...

    def save(self, posting: Posting) -> Posting: ...


class DedupPersister:
    """
    Stores only postings whose external_id is not already known.

    Lookup-then-save runs under a lock picked by hashing the external_id, so two
    workers holding the same listing serialize while unrelated ids proceed in
    parallel. The store's UNIQUE constraint stays the final word: a ConflictError
    (e.g. another process got there first) counts as "already stored".
    """

    def __init__(self, store: PostingStore, stripes: int = _LOCK_STRIPES) -> None:
        self._store = store
        self._locks = [threading.Lock() for _ in range(max(1, stripes))]

    def absorb_batch(self, candidates: Iterable[Posting]) -> list[Posting]:
        """
        Persist the unseen postings of `candidates`, in input order.

        Returns:
            The stored postings (with id/timestamps), each external_id at most once.
        Raises:
            InfrastructureError: propagated from the store.
        """
        stored: list[Posting] = []
        seen = 0
        conflicts = 0

        for p in candidates:
            seen += 1
            with self._lock_for(p.external_id):
                if self._store.find_by_external_id(p.external_id) is not None:
                    continue
                try:
                    stored.append(self._store.save(p))
                except ConflictError:
                    conflicts += 1

        logging_bridge.activity({
            "component": "jobs_tracker.persister",
            "op": "absorb_batch",
            "candidates": seen,
            "new": len(stored),
            "skipped": seen - len(stored),
            "conflicts": conflicts,
        })
        return stored

    def _lock_for(self, external_id: str) -> threading.Lock:
        return self._locks[zlib.crc32(external_id.encode("utf-8")) % len(self._locks)]
