# src/cache/summarized_context_cache.py - v1
"""Long-TTL cache of AI-compressed context, gated by summarization version.

Keys embed the configured version ('summarized:<version>:<context key>'),
so bumping the version makes every older entry unreachable. Entries are
never upgraded in place; stale versions are purged by the sweeper.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import timedelta

from promptlift.cache.fingerprint import compute_context_key, normalize_terms
from promptlift.cache.models import CacheStats, CuratedDoc, SummarizedContextEntry
from promptlift.cache.tiered_cache import TieredCache
from promptlift.core.models import CodeSnippet

logger = logging.getLogger(__name__)

NAMESPACE = "summarized"
DEFAULT_TTL_SECONDS = 24 * 60 * 60


class SummarizedContextCache:
    """Summarized context for the currently configured version."""

    def __init__(
        self,
        cache: TieredCache,
        version: str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        if not version or ":" in version:
            raise ValueError(f"Invalid summarization version: {version!r}")
        self._cache = cache
        self._version = version
        self._ttl = timedelta(seconds=ttl_seconds)

    @property
    def version(self) -> str:
        return self._version

    def key(self, project_signature: str, frameworks: Iterable[str]) -> str:
        context_key = compute_context_key(project_signature, frameworks)
        return f"{NAMESPACE}:{self._version}:{context_key}"

    async def get(
        self, project_signature: str, frameworks: Iterable[str]
    ) -> SummarizedContextEntry | None:
        key = self.key(project_signature, frameworks)
        entry = await self._cache.get(NAMESPACE, key, SummarizedContextEntry)
        if entry is None:
            return None
        if entry.summarization_version != self._version:
            logger.info(
                "Summarized entry %s has version %s, want %s; treating as absent",
                key, entry.summarization_version, self._version,
            )
            return None
        return entry

    async def set(
        self,
        project_signature: str,
        frameworks: Iterable[str],
        summarized_facts: list[str],
        summarized_docs: list[CuratedDoc],
        summarized_snippets: list[CodeSnippet],
        original_token_count: int,
        summarized_token_count: int,
        quality_score: float,
    ) -> SummarizedContextEntry:
        """Store a new summarized entry, replacing any previous one."""
        names = normalize_terms(frameworks)
        now = self._cache.now()
        entry = SummarizedContextEntry(
            fingerprint_prefix=compute_context_key(project_signature, names),
            project_signature=project_signature,
            frameworks=names,
            summarization_version=self._version,
            summarized_facts=list(summarized_facts),
            summarized_docs=list(summarized_docs),
            summarized_snippets=list(summarized_snippets),
            original_token_count=original_token_count,
            summarized_token_count=summarized_token_count,
            quality_score=quality_score,
            created_at=now,
            expires_at=now + self._ttl,
        )
        await self._cache.put(
            NAMESPACE,
            self.key(project_signature, names),
            entry,
            project_signature=project_signature,
        )
        return entry

    async def invalidate_by_project_signature(self, project_signature: str) -> int:
        prefix = f"{NAMESPACE}:{self._version}:{project_signature}:"
        removed = await self._cache.delete_prefix(prefix)
        logger.info(
            "Summarized context invalidated for signature %s (%d entries)",
            project_signature, removed,
        )
        return removed

    async def purge_stale_versions(self) -> int:
        """Delete entries written under any other summarization version."""
        current = f"{NAMESPACE}:{self._version}:"
        removed = 0
        for key in await self._cache.keys(f"{NAMESPACE}:"):
            if not key.startswith(current):
                await self._cache.delete(key)
                removed += 1
        if removed:
            logger.info("Purged %d summarized entries from older versions", removed)
        return removed

    def stats(self) -> CacheStats:
        return self._cache.stats(NAMESPACE)
