# src/cache/raw_context_cache.py - v1
"""Short-TTL cache of raw (uncompressed) context per project + frameworks.

Used as the source for summarization and as the fallback when the
summarized cache misses. Entries are overwritten wholesale on re-gather.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import timedelta

from promptlift.cache.fingerprint import compute_context_key, normalize_terms
from promptlift.cache.models import CacheStats, LibraryDoc, RawContextEntry
from promptlift.cache.tiered_cache import TieredCache
from promptlift.core.models import CodeSnippet

logger = logging.getLogger(__name__)

NAMESPACE = "raw"
DEFAULT_TTL_SECONDS = 2 * 60 * 60


class RawContextCache:
    """Raw context keyed by 'raw:<signature>:<frameworks hash>'."""

    def __init__(self, cache: TieredCache, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self._cache = cache
        self._ttl = timedelta(seconds=ttl_seconds)
        self._access_counts: dict[str, int] = {}

    @staticmethod
    def key(project_signature: str, frameworks: Iterable[str]) -> str:
        return f"{NAMESPACE}:{compute_context_key(project_signature, frameworks)}"

    async def get(
        self, project_signature: str, frameworks: Iterable[str]
    ) -> RawContextEntry | None:
        """Return the live entry, annotated with in-process access stats."""
        key = self.key(project_signature, frameworks)
        entry = await self._cache.get(NAMESPACE, key, RawContextEntry)
        if entry is None:
            return None
        count = self._access_counts.get(key, entry.access_count) + 1
        self._access_counts[key] = count
        logger.debug("Raw context hit %s (access #%d)", key, count)
        return entry.model_copy(
            update={"access_count": count, "last_accessed_at": self._cache.now()}
        )

    async def set(
        self,
        project_signature: str,
        frameworks: Iterable[str],
        repo_facts: list[str],
        code_snippets: list[CodeSnippet],
        raw_docs: list[LibraryDoc],
    ) -> RawContextEntry:
        """Store (overwrite) the raw context for a project + framework pair."""
        names = normalize_terms(frameworks)
        key = self.key(project_signature, names)
        now = self._cache.now()
        entry = RawContextEntry(
            fingerprint_prefix=compute_context_key(project_signature, names),
            project_signature=project_signature,
            frameworks=names,
            repo_facts=list(repo_facts),
            code_snippets=list(code_snippets),
            raw_docs=list(raw_docs),
            created_at=now,
            expires_at=now + self._ttl,
        )
        await self._cache.put(NAMESPACE, key, entry, project_signature=project_signature)
        self._access_counts.pop(key, None)
        logger.debug("Raw context stored %s (%d docs)", key, len(raw_docs))
        return entry

    async def invalidate_by_project_signature(self, project_signature: str) -> int:
        """Drop every raw entry of a project; used when its manifest changes."""
        prefix = f"{NAMESPACE}:{project_signature}:"
        self._access_counts = {
            k: v for k, v in self._access_counts.items() if not k.startswith(prefix)
        }
        removed = await self._cache.delete_prefix(prefix)
        logger.info(
            "Raw context invalidated for signature %s (%d entries)",
            project_signature, removed,
        )
        return removed

    def stats(self) -> CacheStats:
        return self._cache.stats(NAMESPACE)
