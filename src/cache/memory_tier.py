# src/cache/memory_tier.py - v1
"""Volatile cache tier: capacity-bounded in-memory LRU.

Fastest lookup path, lost on restart. Values are kept as parsed models
so a memory hit costs no deserialization.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


class MemoryTier(Generic[V]):
    """Least-recently-used map guarded by a lock for put/evict."""

    def __init__(self, capacity: int = 1000) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._capacity = capacity
        self._entries: OrderedDict[str, V] = OrderedDict()
        self._lock = threading.Lock()
        self.evictions = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, key: str) -> V | None:
        """Return the value and mark it most recently used."""
        with self._lock:
            value = self._entries.get(key)
            if value is not None:
                self._entries.move_to_end(key)
            return value

    def put(self, key: str, value: V) -> None:
        """Insert or replace, then evict down to capacity."""
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
        self.evict_if_over_capacity()

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        """Remove every key starting with prefix; returns the count removed."""
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for k in doomed:
                del self._entries[k]
        return len(doomed)

    def delete_where(self, predicate: Callable[[str, V], bool]) -> int:
        """Remove every entry for which predicate(key, value) is true."""
        with self._lock:
            doomed = [k for k, v in self._entries.items() if predicate(k, v)]
            for k in doomed:
                del self._entries[k]
        return len(doomed)

    def evict_if_over_capacity(self) -> int:
        """Drop least recently used entries until within capacity."""
        evicted = 0
        with self._lock:
            while len(self._entries) > self._capacity:
                key, _ = self._entries.popitem(last=False)
                evicted += 1
                logger.debug("Evicted %s from memory tier", key)
            self.evictions += evicted
        return evicted

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
