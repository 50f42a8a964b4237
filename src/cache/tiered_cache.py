# src/cache/tiered_cache.py - v1
"""Two-tier cache: volatile LRU in front of a durable store.

Read path: memory -> durable. A durable hit is promoted into memory.
Write path: durable first (awaited), then memory.
Expiry is lazy: an entry whose expires_at has passed reads as a miss
whether or not a sweep has removed it yet. A durable payload that fails
validation is evicted and reads as a miss.

Keys are namespaced by the caller ("raw:", "summarized:v1:", ...). Hit and
miss counters are kept per namespace and flushed to the durable store's
stats table on demand.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TypeVar

from pydantic import ValidationError as PydanticValidationError

from promptlift.cache.base_cache_store import BaseCacheStore
from promptlift.cache.memory_tier import MemoryTier
from promptlift.cache.models import CacheRecord, CacheStats
from promptlift.core.errors import CacheCorruptionError, StoreUnavailableError

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=CacheRecord)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TieredCache:
    """Composes a MemoryTier and an optional durable BaseCacheStore.

    Args:
        durable: Durable backend. None keeps the cache memory-only.
        memory_capacity: LRU capacity of the volatile tier.
        clock: Returns the current aware UTC datetime (injectable for tests).
    """

    def __init__(
        self,
        durable: BaseCacheStore | None,
        memory_capacity: int = 1000,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._durable = durable
        self._memory: MemoryTier[CacheRecord] = MemoryTier(memory_capacity)
        self._clock = clock or utc_now
        self._stats: dict[str, CacheStats] = {}
        self._pending: dict[str, list[int]] = {}

    @property
    def memory(self) -> MemoryTier[CacheRecord]:
        return self._memory

    @property
    def durable(self) -> BaseCacheStore | None:
        return self._durable

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    async def get(self, namespace: str, key: str, model: type[R]) -> R | None:
        """Look a key up in memory, then durable storage."""
        stats = self._stats_for(namespace)
        now = self.now()

        cached = self._memory.get(key)
        if cached is not None:
            if isinstance(cached, model) and not cached.is_expired(now):
                stats.memory_hits += 1
                self._count(namespace, hit=True)
                return cached
            # Expired or shadowed by a different record type.
            self._memory.delete(key)
            if cached.is_expired(now):
                stats.expired += 1
                self._count(namespace, hit=False)
                return None

        if self._durable is None:
            self._count(namespace, hit=False)
            return None

        try:
            stored = await self._durable.get(key)
        except StoreUnavailableError as e:
            logger.warning("Durable read degraded for %s: %s", key, e)
            self._count(namespace, hit=False)
            return None

        if stored is None:
            self._count(namespace, hit=False)
            return None
        if now >= stored.expires_at:
            stats.expired += 1
            self._count(namespace, hit=False)
            return None

        try:
            record = self._decode(key, stored.value, model)
        except CacheCorruptionError as e:
            logger.warning("%s; evicting", e)
            stats.corrupted += 1
            await self._evict_corrupted(key)
            self._count(namespace, hit=False)
            return None

        self._promote(key, record)
        stats.durable_hits += 1
        self._count(namespace, hit=True)
        return record

    async def put(
        self,
        namespace: str,
        key: str,
        record: CacheRecord,
        project_signature: str = "",
    ) -> None:
        """Write through both tiers."""
        if self._durable is not None:
            try:
                await self._durable.put(
                    key,
                    record.model_dump_json(),
                    record.expires_at,
                    namespace=namespace,
                    project_signature=project_signature,
                )
            except StoreUnavailableError as e:
                logger.warning("Durable write degraded for %s: %s", key, e)
        self._promote(key, record)

    async def delete(self, key: str) -> None:
        self._memory.delete(key)
        if self._durable is not None:
            await self._durable.delete(key)

    async def delete_prefix(self, prefix: str) -> int:
        """Range invalidation in both tiers; returns durable rows removed."""
        removed_memory = self._memory.delete_prefix(prefix)
        removed_durable = 0
        if self._durable is not None:
            removed_durable = await self._durable.delete_prefix(prefix)
        logger.debug(
            "Invalidated prefix %s: %d memory, %d durable",
            prefix, removed_memory, removed_durable,
        )
        return max(removed_memory, removed_durable)

    async def delete_by_signature(self, namespace: str, project_signature: str) -> int:
        """Remove a namespace's entries tagged with a project signature."""
        prefix = f"{namespace}:"
        removed_memory = self._memory.delete_where(
            lambda k, v: k.startswith(prefix)
            and getattr(v, "project_signature", None) == project_signature
        )
        removed_durable = 0
        if self._durable is not None:
            removed_durable = await self._durable.delete_by_signature(
                namespace, project_signature
            )
        return max(removed_memory, removed_durable)

    async def keys(self, prefix: str = "") -> list[str]:
        """Keys in either tier starting with prefix."""
        found = {k for k in self._memory.keys() if k.startswith(prefix)}
        if self._durable is not None:
            found.update(await self._durable.keys(prefix))
        return sorted(found)

    async def sweep(self) -> int:
        """Physically drop expired entries from both tiers."""
        now = self.now()
        removed = self._memory.delete_where(lambda _k, v: v.is_expired(now))
        if self._durable is not None:
            removed += await self._durable.sweep_expired(now)
        return removed

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def stats(self, namespace: str) -> CacheStats:
        """Snapshot of in-process counters for a namespace."""
        snapshot = self._stats_for(namespace).model_copy()
        snapshot.evictions = self._memory.evictions
        return snapshot

    async def persisted_stats(self) -> dict[str, tuple[int, int]]:
        """Hit/miss counters accumulated in the durable stats table."""
        if self._durable is None:
            return {}
        await self.flush_stats()
        return await self._durable.load_stats()

    async def flush_stats(self) -> None:
        """Push pending counters to the durable stats table."""
        if self._durable is None or not self._pending:
            return
        pending, self._pending = self._pending, {}
        for namespace, (hits, misses) in pending.items():
            try:
                await self._durable.record_stats(namespace, hits=hits, misses=misses)
            except StoreUnavailableError as e:
                logger.warning("Could not persist stats for %s: %s", namespace, e)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _stats_for(self, namespace: str) -> CacheStats:
        if namespace not in self._stats:
            self._stats[namespace] = CacheStats(namespace=namespace)
        return self._stats[namespace]

    def _count(self, namespace: str, hit: bool) -> None:
        stats = self._stats_for(namespace)
        pending = self._pending.setdefault(namespace, [0, 0])
        if hit:
            stats.hits += 1
            pending[0] += 1
        else:
            stats.misses += 1
            pending[1] += 1

    def _promote(self, key: str, record: CacheRecord) -> None:
        self._memory.put(key, record)

    @staticmethod
    def _decode(key: str, payload: str, model: type[R]) -> R:
        try:
            return model.model_validate_json(payload)
        except (PydanticValidationError, ValueError) as e:
            raise CacheCorruptionError(key, str(e).splitlines()[0]) from e

    async def _evict_corrupted(self, key: str) -> None:
        self._memory.delete(key)
        if self._durable is None:
            return
        try:
            await self._durable.delete(key)
        except StoreUnavailableError as e:
            logger.warning("Could not evict corrupted entry %s: %s", key, e)
