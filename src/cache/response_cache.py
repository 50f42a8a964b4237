# src/cache/response_cache.py - v1
"""Response-level cache: final enhanced prompt per full fingerprint.

The only cache keyed by prompt text (through the fingerprint). TTL scales
with prompt complexity and is capped at a maximum age.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from promptlift.cache.models import (
    CacheStats,
    ContextUsed,
    ResponseCacheEntry,
    ResponseMetrics,
)
from promptlift.cache.tiered_cache import TieredCache
from promptlift.core.models import ComplexityLevel

logger = logging.getLogger(__name__)

NAMESPACE = "response"

_COMPLEXITY_TTL_FACTOR: dict[str, float] = {
    "simple": 0.5,
    "medium": 1.0,
    "complex": 2.0,
}


class ResponseCache:
    """Enhanced prompts keyed by 'response:<fingerprint>'."""

    def __init__(
        self,
        cache: TieredCache,
        default_ttl_seconds: int = 3600,
        max_ttl_seconds: int = 86400,
    ) -> None:
        self._cache = cache
        self._default_ttl = default_ttl_seconds
        self._max_ttl = max_ttl_seconds

    @staticmethod
    def key(fingerprint: str) -> str:
        return f"{NAMESPACE}:{fingerprint}"

    def ttl_for(self, complexity: ComplexityLevel) -> timedelta:
        factor = _COMPLEXITY_TTL_FACTOR.get(complexity, 1.0)
        return timedelta(seconds=min(self._default_ttl * factor, self._max_ttl))

    async def get(self, fingerprint: str) -> ResponseCacheEntry | None:
        return await self._cache.get(NAMESPACE, self.key(fingerprint), ResponseCacheEntry)

    async def set(
        self,
        fingerprint: str,
        project_signature: str,
        original_prompt: str,
        enhanced_prompt: str,
        context_used: ContextUsed,
        complexity: ComplexityLevel,
        metrics: ResponseMetrics,
    ) -> ResponseCacheEntry:
        now = self._cache.now()
        entry = ResponseCacheEntry(
            fingerprint=fingerprint,
            project_signature=project_signature,
            original_prompt=original_prompt,
            enhanced_prompt=enhanced_prompt,
            context_used=context_used,
            complexity=complexity,
            metrics=metrics,
            created_at=now,
            expires_at=now + self.ttl_for(complexity),
        )
        await self._cache.put(
            NAMESPACE, self.key(fingerprint), entry, project_signature=project_signature
        )
        logger.debug("Response cached %s (%s)", fingerprint, complexity)
        return entry

    async def invalidate_by_project_signature(self, project_signature: str) -> int:
        removed = await self._cache.delete_by_signature(NAMESPACE, project_signature)
        logger.info(
            "Responses invalidated for signature %s (%d entries)",
            project_signature, removed,
        )
        return removed

    def stats(self) -> CacheStats:
        return self._cache.stats(NAMESPACE)
