"""Content-addressed memoisation shared by the pipeline stages."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Tuple, TypeVar

LOG = logging.getLogger(__name__)

T = TypeVar("T")

__all__ = ["AnalysisCache", "CacheStats"]


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {"hits": self.hits, "misses": self.misses}


class AnalysisCache:
    """Maps ``(namespace, content hash)`` to a previously computed value.

    Entries live as long as the owning pipeline and are never evicted.
    :meth:`get_or_compute` holds a per-key lock while the factory runs, so a
    given key is computed at most once even when the cache is shared between
    threads.
    """

    def __init__(self) -> None:
        self._entries: Dict[Tuple[str, Hashable], Any] = {}
        self._key_locks: Dict[Tuple[str, Hashable], threading.Lock] = {}
        self._guard = threading.Lock()
        self.stats = CacheStats()

    def _lock_for(self, key: Tuple[str, Hashable]) -> threading.Lock:
        with self._guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def get_or_compute(self, namespace: str, key: Hashable, factory: Callable[[], T]) -> T:
        entry_key = (namespace, key)
        with self._guard:
            if entry_key in self._entries:
                self.stats.hits += 1
                LOG.debug("cache hit for %s:%s", namespace, key)
                return self._entries[entry_key]
        with self._lock_for(entry_key):
            with self._guard:
                if entry_key in self._entries:
                    self.stats.hits += 1
                    return self._entries[entry_key]
            value = factory()
            with self._guard:
                self._entries[entry_key] = value
                self.stats.misses += 1
            return value

    def get(self, namespace: str, key: Hashable, default: Any = None) -> Any:
        with self._guard:
            return self._entries.get((namespace, key), default)

    def contains(self, namespace: str, key: Hashable) -> bool:
        with self._guard:
            return (namespace, key) in self._entries

    def clear(self) -> None:
        with self._guard:
            self._entries.clear()
            self._key_locks.clear()
            self.stats = CacheStats()

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
