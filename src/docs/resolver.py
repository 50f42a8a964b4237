# src/docs/resolver.py - v2
"""Framework name -> library id -> documentation, with caching and fan-out.

Two cache namespaces sit in front of the documentation service:

  library:<framework>          resolved library id (long TTL)
  docs:<library id>:<topic>    fetched documentation (short TTL)

fetch_many() runs one task per framework, each under its own timeout and
with its own failure capture, and joins them all. A failed or slow
framework yields an error slot; the other slots are unaffected.
Identical concurrent lookups share one upstream call.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from promptlift.cache.coalescer import SingleFlight
from promptlift.cache.models import DocsCacheEntry, LibraryCacheEntry
from promptlift.cache.tiered_cache import TieredCache
from promptlift.core.errors import ExternalServiceError
from promptlift.docs.base_docs_client import BaseDocsClient
from promptlift.docs.models import DocSlot, DocumentContent, LibraryMatch

logger = logging.getLogger(__name__)

LIBRARY_NAMESPACE = "library"
DOCS_NAMESPACE = "docs"


class DocumentationResolver:
    """Resolves and fetches documentation for detected frameworks.

    Args:
        client: Documentation service client.
        cache: Shared tiered cache.
        docs_ttl_seconds: TTL of docs: entries.
        library_ttl_seconds: TTL of library: entries.
        timeout_s: Per-framework timeout inside fetch_many().
    """

    def __init__(
        self,
        client: BaseDocsClient,
        cache: TieredCache,
        docs_ttl_seconds: int = 3600,
        library_ttl_seconds: int = 86400,
        timeout_s: float = 5.0,
    ) -> None:
        self._client = client
        self._cache = cache
        self._docs_ttl = timedelta(seconds=docs_ttl_seconds)
        self._library_ttl = timedelta(seconds=library_ttl_seconds)
        self._timeout_s = timeout_s
        self._resolve_flight: SingleFlight[LibraryMatch | None] = SingleFlight("resolve")
        self._fetch_flight: SingleFlight[str] = SingleFlight("fetch_docs")

    @property
    def client(self) -> BaseDocsClient:
        return self._client

    @staticmethod
    def library_key(framework: str) -> str:
        return f"{LIBRARY_NAMESPACE}:{framework.strip().lower()}"

    @staticmethod
    def docs_key(library_id: str, topic: str) -> str:
        return f"{DOCS_NAMESPACE}:{library_id}:{topic}"

    # ------------------------------------------------------------------
    # Single lookups
    # ------------------------------------------------------------------

    async def resolve(self, framework: str) -> LibraryMatch | None:
        """Highest-trust library for a framework, or None if there is none."""
        match, _calls = await self._resolve(framework)
        return match

    async def fetch_docs(self, library_id: str, topic: str, token_budget: int) -> DocumentContent:
        """Documentation for a library + topic.

        Raises:
            ExternalServiceError: Upstream failure or timeout.
        """
        try:
            doc, _calls = await asyncio.wait_for(
                self._fetch(library_id, topic, token_budget), timeout=self._timeout_s
            )
        except asyncio.TimeoutError as e:
            raise ExternalServiceError(
                self._client.provider_name, f"timed out after {self._timeout_s:.1f}s"
            ) from e
        return doc

    async def _resolve(self, framework: str) -> tuple[LibraryMatch | None, int]:
        key = self.library_key(framework)
        cached = await self._cache.get(LIBRARY_NAMESPACE, key, LibraryCacheEntry)
        if cached is not None:
            return (
                LibraryMatch(
                    library_id=cached.library_id,
                    trust_score=cached.trust_score,
                    description=cached.description,
                ),
                0,
            )

        match, leader = await self._resolve_flight.do(
            key, lambda: self._resolve_upstream(framework, key)
        )
        return match, 1 if leader else 0

    async def _resolve_upstream(self, framework: str, key: str) -> LibraryMatch | None:
        matches = await self._client.search_libraries(framework)
        if not matches:
            logger.info("No library found for framework %r", framework)
            return None
        best = max(matches, key=lambda m: m.trust_score)
        now = self._cache.now()
        await self._cache.put(
            LIBRARY_NAMESPACE,
            key,
            LibraryCacheEntry(
                framework=framework.strip().lower(),
                library_id=best.library_id,
                trust_score=best.trust_score,
                description=best.description,
                created_at=now,
                expires_at=now + self._library_ttl,
            ),
        )
        logger.debug("Resolved %r -> %s (trust %.1f)", framework, best.library_id, best.trust_score)
        return best

    async def _fetch(
        self, library_id: str, topic: str, token_budget: int
    ) -> tuple[DocumentContent, int]:
        key = self.docs_key(library_id, topic)
        cached = await self._cache.get(DOCS_NAMESPACE, key, DocsCacheEntry)
        if cached is not None and cached.token_budget >= token_budget:
            return (
                DocumentContent(
                    library_id=library_id,
                    topic=topic,
                    content=cached.content,
                    token_budget=cached.token_budget,
                    from_cache=True,
                ),
                0,
            )

        content, leader = await self._fetch_flight.do(
            key, lambda: self._fetch_upstream(library_id, topic, token_budget, key)
        )
        doc = DocumentContent(
            library_id=library_id, topic=topic, content=content, token_budget=token_budget
        )
        return doc, 1 if leader else 0

    async def _fetch_upstream(
        self, library_id: str, topic: str, token_budget: int, key: str
    ) -> str:
        content = await self._client.fetch_docs(library_id, topic, token_budget)
        now = self._cache.now()
        await self._cache.put(
            DOCS_NAMESPACE,
            key,
            DocsCacheEntry(
                library_id=library_id,
                topic=topic,
                token_budget=token_budget,
                content=content,
                created_at=now,
                expires_at=now + self._docs_ttl,
            ),
        )
        return content

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def fetch_many(
        self, frameworks: list[str], topic: str, token_budget: int
    ) -> list[DocSlot]:
        """One slot per framework, in input order; budget split evenly."""
        if not frameworks:
            return []
        per_library = max(1, token_budget // len(frameworks))
        slots = [DocSlot(framework=name) for name in frameworks]
        await asyncio.gather(
            *(self._fill_slot(slot, topic, per_library) for slot in slots)
        )
        failed = [s.framework for s in slots if not s.ok]
        if failed:
            logger.warning(
                "Documentation degraded: %d/%d frameworks failed (%s)",
                len(failed), len(slots), ", ".join(failed),
            )
        return slots

    async def _fill_slot(self, slot: DocSlot, topic: str, token_budget: int) -> None:
        try:
            await asyncio.wait_for(
                self._lookup(slot, topic, token_budget), timeout=self._timeout_s
            )
        except asyncio.TimeoutError:
            slot.error = f"timed out after {self._timeout_s:.1f}s"
            slot.content = None
        except ExternalServiceError as e:
            slot.error = str(e)
            slot.content = None
        except Exception as e:
            # Any failure degrades this slot only; cancellation still propagates.
            logger.warning(
                "Documentation lookup for %s failed: %s", slot.framework, e, exc_info=True
            )
            slot.error = f"{type(e).__name__}: {e}"
            slot.content = None

    async def _lookup(self, slot: DocSlot, topic: str, token_budget: int) -> None:
        match, calls = await self._resolve(slot.framework)
        slot.external_calls += calls
        if match is None:
            # Nothing to fetch; not a failure.
            slot.content = ""
            return
        slot.library_id = match.library_id
        doc, calls = await self._fetch(match.library_id, topic, token_budget)
        slot.external_calls += calls
        slot.content = doc.content
