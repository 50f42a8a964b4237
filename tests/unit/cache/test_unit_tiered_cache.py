# tests/unit/cache/test_unit_tiered_cache.py - v1
"""Tests for cache/tiered_cache.py - read-through, lazy expiry, corruption."""

from __future__ import annotations

import json
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from promptlift.cache.models import DocsCacheEntry, LibraryCacheEntry
from promptlift.cache.tiered_cache import TieredCache
from promptlift.core.errors import StoreUnavailableError


def _docs_entry(now, ttl_s: int = 3600, content: str = "docs") -> DocsCacheEntry:
    return DocsCacheEntry(
        library_id="/react/docs",
        topic="hooks",
        token_budget=500,
        content=content,
        created_at=now,
        expires_at=now + timedelta(seconds=ttl_s),
    )


class TestReadThrough:
    @pytest.mark.asyncio
    async def test_put_writes_both_tiers(self, tiered_cache, sqlite_store, fake_clock):
        await tiered_cache.put("docs", "docs:/react/docs:hooks", _docs_entry(fake_clock()))
        assert "docs:/react/docs:hooks" in tiered_cache.memory
        assert await sqlite_store.get("docs:/react/docs:hooks") is not None

    @pytest.mark.asyncio
    async def test_memory_hit(self, tiered_cache, fake_clock):
        await tiered_cache.put("docs", "k", _docs_entry(fake_clock()))
        got = await tiered_cache.get("docs", "k", DocsCacheEntry)
        assert got is not None and got.content == "docs"
        stats = tiered_cache.stats("docs")
        assert stats.memory_hits == 1
        assert stats.hits == 1

    @pytest.mark.asyncio
    async def test_durable_hit_promotes(self, tiered_cache, fake_clock):
        await tiered_cache.put("docs", "k", _docs_entry(fake_clock()))
        tiered_cache.memory.clear()

        got = await tiered_cache.get("docs", "k", DocsCacheEntry)
        assert got is not None
        assert "k" in tiered_cache.memory
        assert tiered_cache.stats("docs").durable_hits == 1

    @pytest.mark.asyncio
    async def test_miss_counted(self, tiered_cache):
        assert await tiered_cache.get("docs", "nope", DocsCacheEntry) is None
        assert tiered_cache.stats("docs").misses == 1

    @pytest.mark.asyncio
    async def test_survives_new_cache_instance(self, sqlite_store, fake_clock):
        first = TieredCache(sqlite_store, clock=fake_clock)
        await first.put("docs", "k", _docs_entry(fake_clock()))
        second = TieredCache(sqlite_store, clock=fake_clock)
        assert await second.get("docs", "k", DocsCacheEntry) is not None


class TestLazyExpiry:
    @pytest.mark.asyncio
    async def test_expired_in_memory_is_miss(self, tiered_cache, fake_clock):
        await tiered_cache.put("docs", "k", _docs_entry(fake_clock(), ttl_s=60))
        fake_clock.advance(61)
        assert await tiered_cache.get("docs", "k", DocsCacheEntry) is None
        assert tiered_cache.stats("docs").expired == 1

    @pytest.mark.asyncio
    async def test_expired_in_durable_is_miss(self, tiered_cache, fake_clock):
        await tiered_cache.put("docs", "k", _docs_entry(fake_clock(), ttl_s=60))
        tiered_cache.memory.clear()
        fake_clock.advance(60)
        assert await tiered_cache.get("docs", "k", DocsCacheEntry) is None

    @pytest.mark.asyncio
    async def test_sweep_removes_expired(self, tiered_cache, sqlite_store, fake_clock):
        await tiered_cache.put("docs", "old", _docs_entry(fake_clock(), ttl_s=10))
        await tiered_cache.put("docs", "new", _docs_entry(fake_clock(), ttl_s=1000))
        fake_clock.advance(11)
        removed = await tiered_cache.sweep()
        assert removed == 2  # one from each tier
        assert await sqlite_store.keys() == ["new"]


class TestCorruption:
    @pytest.mark.asyncio
    async def test_malformed_payload_evicted(self, tiered_cache, sqlite_store, fake_clock):
        await sqlite_store.put("k", "{not json", fake_clock() + timedelta(hours=1))
        assert await tiered_cache.get("docs", "k", DocsCacheEntry) is None
        assert await sqlite_store.get("k") is None
        assert tiered_cache.stats("docs").corrupted == 1

    @pytest.mark.asyncio
    async def test_unknown_field_is_corruption(self, tiered_cache, sqlite_store, fake_clock):
        entry = _docs_entry(fake_clock()).model_dump(mode="json")
        entry["surprise"] = True
        await sqlite_store.put("k", json.dumps(entry), fake_clock() + timedelta(hours=1))
        assert await tiered_cache.get("docs", "k", DocsCacheEntry) is None
        assert tiered_cache.stats("docs").corrupted == 1

    @pytest.mark.asyncio
    async def test_wrong_record_type_is_corruption(self, tiered_cache, fake_clock):
        await tiered_cache.put("docs", "k", _docs_entry(fake_clock()))
        tiered_cache.memory.clear()
        assert await tiered_cache.get("library", "k", LibraryCacheEntry) is None


class TestDegradedDurable:
    def _failing_store(self):
        store = MagicMock()
        store.get = AsyncMock(side_effect=StoreUnavailableError("get", "timed out"))
        store.put = AsyncMock(side_effect=StoreUnavailableError("put", "timed out"))
        store.record_stats = AsyncMock(side_effect=StoreUnavailableError("stats", "x"))
        return store

    @pytest.mark.asyncio
    async def test_unavailable_read_is_miss(self, fake_clock):
        cache = TieredCache(self._failing_store(), clock=fake_clock)
        assert await cache.get("docs", "k", DocsCacheEntry) is None

    @pytest.mark.asyncio
    async def test_unavailable_write_still_fills_memory(self, fake_clock):
        cache = TieredCache(self._failing_store(), clock=fake_clock)
        await cache.put("docs", "k", _docs_entry(fake_clock()))
        assert await cache.get("docs", "k", DocsCacheEntry) is not None

    @pytest.mark.asyncio
    async def test_memory_only(self, fake_clock):
        cache = TieredCache(None, clock=fake_clock)
        await cache.put("docs", "k", _docs_entry(fake_clock()))
        assert await cache.get("docs", "k", DocsCacheEntry) is not None
        assert await cache.persisted_stats() == {}


class TestStats:
    @pytest.mark.asyncio
    async def test_flush_and_load(self, tiered_cache, fake_clock):
        await tiered_cache.put("docs", "k", _docs_entry(fake_clock()))
        await tiered_cache.get("docs", "k", DocsCacheEntry)
        await tiered_cache.get("docs", "missing", DocsCacheEntry)
        await tiered_cache.get("raw", "missing", DocsCacheEntry)

        persisted = await tiered_cache.persisted_stats()
        assert persisted == {"docs": (1, 1), "raw": (0, 1)}

        # Already flushed counters are not added twice
        assert await tiered_cache.persisted_stats() == persisted

    @pytest.mark.asyncio
    async def test_hit_rate(self, tiered_cache, fake_clock):
        await tiered_cache.put("docs", "k", _docs_entry(fake_clock()))
        for _ in range(3):
            await tiered_cache.get("docs", "k", DocsCacheEntry)
        await tiered_cache.get("docs", "other", DocsCacheEntry)
        assert tiered_cache.stats("docs").hit_rate == pytest.approx(0.75)

    @pytest.mark.asyncio
    async def test_delete_prefix(self, tiered_cache, sqlite_store, fake_clock):
        await tiered_cache.put("raw", "raw:s1:a", _docs_entry(fake_clock()))
        await tiered_cache.put("raw", "raw:s2:a", _docs_entry(fake_clock()))
        assert await tiered_cache.delete_prefix("raw:s1:") == 1
        assert await tiered_cache.keys("raw:") == ["raw:s2:a"]
