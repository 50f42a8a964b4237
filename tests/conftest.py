# tests/conftest.py - v4
"""Shared test fixtures for all unit and integration tests.

Provides fake collaborators (documentation service, summarizer, LLM
client), an injectable clock, tmp_path-backed settings and caches.
No network access: every external call is faked.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from promptlift.cache.cache_factory import CacheBundle, create_cache_bundle
from promptlift.cache.sqlite_store import SqliteCacheStore
from promptlift.cache.tiered_cache import TieredCache
from promptlift.config.settings import Settings
from promptlift.core.errors import ExternalServiceError
from promptlift.curation.base_summarizer import BaseSummarizer, SummaryResult
from promptlift.docs.base_docs_client import BaseDocsClient
from promptlift.docs.models import LibraryMatch
from promptlift.llm.base_client import BaseLLMClient
from promptlift.llm.models import CompletionRequest, CompletionResult, TokenUsage


# === FAKES ===


class FakeClock:
    """Callable UTC clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeDocsClient(BaseDocsClient):
    """In-memory documentation service.

    Every framework resolves to '/<name>/docs' unless `libraries` says
    otherwise. `delays`, `failing` and `broken` are keyed by library id;
    `broken` maps to the exception fetch_docs raises.
    """

    def __init__(
        self,
        libraries: dict[str, list[LibraryMatch]] | None = None,
        docs: dict[str, str] | None = None,
        delays: dict[str, float] | None = None,
        failing: set[str] | None = None,
        broken: dict[str, Exception] | None = None,
    ) -> None:
        self.libraries = libraries or {}
        self.docs = docs or {}
        self.delays = delays or {}
        self.failing = failing or set()
        self.broken = broken or {}
        self.search_calls: list[str] = []
        self.fetch_calls: list[tuple[str, str, int]] = []
        self.closed = False

    @property
    def provider_name(self) -> str:
        return "fake-docs"

    async def search_libraries(self, name: str) -> list[LibraryMatch]:
        self.search_calls.append(name)
        if name in self.libraries:
            return list(self.libraries[name])
        return [LibraryMatch(library_id=f"/{name}/docs", trust_score=8.0)]

    async def fetch_docs(self, library_id: str, topic: str, tokens: int) -> str:
        self.fetch_calls.append((library_id, topic, tokens))
        delay = self.delays.get(library_id)
        if delay:
            await asyncio.sleep(delay)
        if library_id in self.failing:
            raise ExternalServiceError(self.provider_name, f"{library_id} unavailable")
        if library_id in self.broken:
            raise self.broken[library_id]
        return self.docs.get(
            library_id, f"{library_id} reference ({topic}): prefer semantic markup."
        )

    async def aclose(self) -> None:
        self.closed = True


class FakeSummarizer(BaseSummarizer):
    """Summarizer returning a fixed quality score."""

    def __init__(
        self,
        quality: float = 0.9,
        cost: float = 0.001,
        estimate: float = 0.001,
        fail: bool = False,
        delay: float = 0.0,
    ) -> None:
        self.quality = quality
        self.cost = cost
        self.estimate = estimate
        self.fail = fail
        self.delay = delay
        self.calls: list[tuple[str, int]] = []

    @property
    def name(self) -> str:
        return "fake-summarizer"

    def estimate_cost(self, content: str, target_tokens: int) -> float:
        return self.estimate

    async def summarize(self, content: str, target_tokens: int) -> SummaryResult:
        self.calls.append((content, target_tokens))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ExternalServiceError("fake-summarizer", "unavailable")
        return SummaryResult(
            summary=f"SUMMARY of {content[:30]}",
            quality_score=self.quality,
            cost_usd=self.cost,
            input_tokens=100,
            output_tokens=20,
        )


class FakeLLMClient(BaseLLMClient):
    """LLM client replaying queued replies.

    A queued str becomes the reply text, a CompletionResult is returned
    as is and an Exception is raised.
    """

    def __init__(
        self,
        contents: list[str | Exception | CompletionResult] | None = None,
        model: str = "claude-haiku-4-5-20251001",
    ) -> None:
        self.contents = list(contents or [])
        self._model = model
        self.calls: list[CompletionRequest] = []
        self.closed = False

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @property
    def model_name(self) -> str:
        return self._model

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        self.calls.append(request)
        item = self.contents.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, CompletionResult):
            return item
        return CompletionResult(
            text=item,
            usage=TokenUsage(input_tokens=1000, output_tokens=200),
            model=self._model,
            provider="anthropic",
            latency_ms=12,
            stop_reason="end_turn",
        )

    async def aclose(self) -> None:
        self.closed = True


# === FIXTURES ===


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from .env, with the cache under tmp_path."""
    return Settings(
        _env_file=None,
        cache_root=tmp_path / "cache",
        docs_timeout_s=0.5,
        summarizer_timeout_s=0.5,
        anthropic_api_key="",
        openai_api_key="",
    )


@pytest.fixture
def sqlite_store(tmp_path):
    store = SqliteCacheStore(db_path=tmp_path / "cache" / "test_cache.db")
    yield store
    store.close()


@pytest.fixture
def tiered_cache(sqlite_store, fake_clock) -> TieredCache:
    return TieredCache(sqlite_store, memory_capacity=100, clock=fake_clock)


@pytest.fixture
def cache_bundle(settings, sqlite_store, fake_clock) -> CacheBundle:
    return create_cache_bundle(settings, durable=sqlite_store, clock=fake_clock)


@pytest.fixture
def docs_client() -> FakeDocsClient:
    return FakeDocsClient()


@pytest.fixture
def summarizer() -> FakeSummarizer:
    return FakeSummarizer()


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    """Queue replies by assigning fake_llm.contents = [...]."""
    return FakeLLMClient()
