# tests/unit/cache/test_unit_memory_tier.py - v1
"""Tests for cache/memory_tier.py - capacity-bounded LRU."""

from __future__ import annotations

import pytest

from promptlift.cache.memory_tier import MemoryTier


class TestMemoryTier:
    def test_put_get(self):
        tier: MemoryTier[str] = MemoryTier(capacity=3)
        tier.put("a", "1")
        assert tier.get("a") == "1"
        assert tier.get("missing") is None

    def test_lru_eviction(self):
        tier: MemoryTier[str] = MemoryTier(capacity=2)
        tier.put("a", "1")
        tier.put("b", "2")
        tier.get("a")  # a is now most recent
        tier.put("c", "3")
        assert "b" not in tier
        assert "a" in tier and "c" in tier
        assert tier.evictions == 1

    def test_replace_does_not_grow(self):
        tier: MemoryTier[str] = MemoryTier(capacity=2)
        tier.put("a", "1")
        tier.put("a", "2")
        assert len(tier) == 1
        assert tier.get("a") == "2"

    def test_delete(self):
        tier: MemoryTier[str] = MemoryTier()
        tier.put("a", "1")
        assert tier.delete("a") is True
        assert tier.delete("a") is False

    def test_delete_prefix(self):
        tier: MemoryTier[str] = MemoryTier()
        for key in ("raw:s1:x", "raw:s1:y", "raw:s2:x", "response:f"):
            tier.put(key, "v")
        assert tier.delete_prefix("raw:s1:") == 2
        assert sorted(tier.keys()) == ["raw:s2:x", "response:f"]

    def test_delete_where(self):
        tier: MemoryTier[int] = MemoryTier()
        for i in range(5):
            tier.put(f"k{i}", i)
        assert tier.delete_where(lambda _k, v: v % 2 == 0) == 3
        assert len(tier) == 2

    def test_invalid_capacity(self):
        with pytest.raises(ValueError, match="capacity"):
            MemoryTier(capacity=0)
