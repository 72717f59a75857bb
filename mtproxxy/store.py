from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .records import ProxyRecord

logger = logging.getLogger("mtproXXy.store")

DEFAULT_CAPACITY = 1_000_000


@dataclass(frozen=True)
class MergeResult:
    added: int
    duplicates: int
    dropped: int
    size: int


class RecordStore:
    """
    Thread-safe, append-only store of unique ProxyRecords keyed by content hash.

    - Insertion order is discovery order; records are never moved or removed.
    - At most one record per hash for the lifetime of the store.
    - Bounded: once `capacity` is reached further records are dropped (and logged).
    - A whole discovered batch is merged under one lock acquisition.
    """
    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self.capacity = max(1, int(capacity))
        self._lock = threading.Lock()
        self._records: List[ProxyRecord] = []
        self._index: Dict[int, int] = {}

    def merge(self, batch: Iterable[ProxyRecord]) -> MergeResult:
        added = 0
        duplicates = 0
        dropped = 0
        with self._lock:
            for rec in batch:
                if rec.hash_value in self._index:
                    duplicates += 1
                    continue
                if len(self._records) >= self.capacity:
                    dropped += 1
                    continue
                self._index[rec.hash_value] = len(self._records)
                self._records.append(rec)
                added += 1
            size = len(self._records)
        if dropped:
            logger.warning("store: capacity %d reached, dropped %d new proxies", self.capacity, dropped)
        return MergeResult(added=added, duplicates=duplicates, dropped=dropped, size=size)

    def add(self, rec: ProxyRecord) -> bool:
        return self.merge((rec,)).added == 1

    def size(self) -> int:
        with self._lock:
            return len(self._records)

    def __len__(self) -> int:
        return self.size()

    def is_full(self) -> bool:
        with self._lock:
            return len(self._records) >= self.capacity

    def contains(self, hash_value: int) -> bool:
        with self._lock:
            return hash_value in self._index

    def get(self, hash_value: int) -> Optional[ProxyRecord]:
        with self._lock:
            i = self._index.get(hash_value)
            return self._records[i] if i is not None else None

    def records(self, count: Optional[int] = None) -> List[ProxyRecord]:
        """
        Return the first `count` records in discovery order (all when None).

        Records are immutable and the prefix never changes once written, so
        callers may iterate the result without holding the store lock.
        """
        with self._lock:
            n = len(self._records) if count is None else max(0, min(int(count), len(self._records)))
            return self._records[:n]
