# src/cache/base_cache_store.py - v2
"""Abstract durable cache store interface.

Values are opaque serialized strings; the tiered cache owns parsing and
expiry semantics. Implementations must survive process restart.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class StoredValue:
    """Raw row returned by a durable store."""

    key: str
    value: str
    expires_at: datetime


class BaseCacheStore(ABC):
    """Unified interface for durable cache backends."""

    @abstractmethod
    async def get(self, key: str) -> StoredValue | None:
        """Retrieve the stored value by key (expired rows included)."""

    @abstractmethod
    async def put(
        self,
        key: str,
        value: str,
        expires_at: datetime,
        namespace: str = "",
        project_signature: str = "",
    ) -> None:
        """Insert or overwrite a value."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove one key; returns whether a row was removed."""

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        """Remove every key starting with prefix (range invalidation)."""

    @abstractmethod
    async def delete_by_signature(self, namespace: str, project_signature: str) -> int:
        """Remove every key of a namespace tagged with a project signature."""

    @abstractmethod
    async def keys(self, prefix: str = "") -> list[str]:
        """List stored keys starting with prefix."""

    @abstractmethod
    async def sweep_expired(self, now: datetime) -> int:
        """Physically delete rows expired at `now`; returns the count."""

    @abstractmethod
    async def record_stats(self, namespace: str, hits: int = 0, misses: int = 0) -> None:
        """Add to the persisted hit/miss counters of a namespace."""

    @abstractmethod
    async def load_stats(self) -> dict[str, tuple[int, int]]:
        """Persisted (hits, misses) per namespace."""

    @abstractmethod
    async def count(self) -> int:
        """Number of stored rows, expired ones included."""

    @abstractmethod
    def close(self) -> None:
        """Release resources."""
