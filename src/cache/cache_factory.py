# src/cache/cache_factory.py - v3
"""Factory for the tiered cache and its namespaced views.

Also hosts CacheSweeper, the background task that physically removes
expired rows, drops entries from retired summarization versions and
flushes hit/miss counters to the durable stats table.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from promptlift.cache.base_cache_store import BaseCacheStore
from promptlift.cache.raw_context_cache import RawContextCache
from promptlift.cache.response_cache import ResponseCache
from promptlift.cache.summarized_context_cache import SummarizedContextCache
from promptlift.cache.tiered_cache import TieredCache
from promptlift.config.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class CacheBundle:
    """Everything the pipeline needs from the cache layer."""

    tiered: TieredCache
    raw: RawContextCache
    summarized: SummarizedContextCache
    response: ResponseCache

    def close(self) -> None:
        if self.tiered.durable is not None:
            self.tiered.durable.close()


def create_cache_store(settings: Settings | None = None) -> BaseCacheStore | None:
    """Instantiate the durable backend, or None when caching is memory-only.

    Args:
        settings: Application settings. Defaults to a fresh Settings().

    Returns:
        Configured BaseCacheStore implementation, or None.
    """
    settings = settings or Settings()
    if not settings.cache_enabled:
        return None

    from promptlift.cache.sqlite_store import SqliteCacheStore

    return SqliteCacheStore(
        db_path=settings.cache_db_path,
        timeout_s=settings.cache_durable_timeout_s,
    )


def create_cache_bundle(
    settings: Settings | None = None,
    durable: BaseCacheStore | None = None,
    clock: Callable[[], datetime] | None = None,
) -> CacheBundle:
    """Wire the tiered cache and the three namespaced caches.

    Args:
        settings: Application settings.
        durable: Pre-built durable store (overrides the configured one).
        clock: Injectable UTC clock, mostly for tests.
    """
    settings = settings or Settings()
    if durable is None:
        durable = create_cache_store(settings)
    tiered = TieredCache(
        durable,
        memory_capacity=settings.cache_memory_capacity,
        clock=clock,
    )
    return CacheBundle(
        tiered=tiered,
        raw=RawContextCache(tiered, ttl_seconds=settings.cache_raw_ttl_seconds),
        summarized=SummarizedContextCache(
            tiered,
            version=settings.summarization_version,
            ttl_seconds=settings.cache_summarized_ttl_seconds,
        ),
        response=ResponseCache(
            tiered,
            default_ttl_seconds=settings.cache_response_ttl_seconds,
            max_ttl_seconds=settings.cache_response_max_ttl_seconds,
        ),
    )


class CacheSweeper:
    """Periodic maintenance of a CacheBundle.

    Usage:
        sweeper = CacheSweeper(bundle, interval_s=600)
        sweeper.start()
        ...
        await sweeper.stop()
    """

    def __init__(self, bundle: CacheBundle, interval_s: float = 600.0) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self._bundle = bundle
        self._interval = interval_s
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> dict[str, int]:
        """One maintenance pass. Returns counts per action."""
        expired = await self._bundle.tiered.sweep()
        stale = await self._bundle.summarized.purge_stale_versions()
        await self._bundle.tiered.flush_stats()
        if expired or stale:
            logger.info("Cache sweep: %d expired, %d stale-version entries removed",
                        expired, stale)
        return {"expired": expired, "stale_versions": stale}

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="cache-sweeper")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.run_once()
            except Exception as e:
                logger.warning("Cache sweep failed: %s", e)
