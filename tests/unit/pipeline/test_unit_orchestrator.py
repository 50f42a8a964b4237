# tests/unit/pipeline/test_unit_orchestrator.py - v2
"""Tests for pipeline/orchestrator.py with fake collaborators."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from promptlift.cache.fingerprint import compute_project_signature
from promptlift.cache.sqlite_store import SqliteCacheStore
from promptlift.core.errors import ValidationError
from promptlift.core.models import RequestContext, RequestOptions
from promptlift.curation.curator import ContentCurator
from promptlift.docs.resolver import DocumentationResolver
from promptlift.pipeline.collaborators import BaseProjectAnalyzer, BaseTaskBreaker
from promptlift.pipeline.orchestrator import PipelineOrchestrator
from promptlift.pipeline.state import PipelinePhase

BUTTON = "How do I create a button?"
COMPLEX_PROMPT = (
    "Implement a React component backed by a REST API endpoint with a database "
    "schema, write tests, and deploy to production using TypeScript and Node"
)


class StaticTaskBreaker(BaseTaskBreaker):
    def __init__(self, tasks: list[str] | None = None, error: Exception | None = None):
        self.tasks = tasks or []
        self.error = error
        self.calls = 0

    async def breakdown(self, prompt, signals):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.tasks


class BrokenAnalyzer(BaseProjectAnalyzer):
    async def analyze(self, prompt, context):
        raise RuntimeError("scanner crashed")


def _orchestrator(settings, cache_bundle, docs_client, summarizer=None, **kwargs):
    resolver = DocumentationResolver(docs_client, cache_bundle.tiered, timeout_s=0.2)
    return PipelineOrchestrator(
        settings, cache_bundle, resolver, ContentCurator(summarizer), **kwargs
    )


@pytest.fixture
def orchestrator(settings, cache_bundle, docs_client) -> PipelineOrchestrator:
    return _orchestrator(settings, cache_bundle, docs_client)


class TestRun:
    @pytest.mark.asyncio
    async def test_cold_run(self, orchestrator, docs_client):
        result = await orchestrator.run(BUTTON)

        assert result.success
        assert result.phase == PipelinePhase.DONE
        assert result.frameworks == ["html", "css"]
        assert result.complexity == "simple"
        assert result.project_signature == compute_project_signature(None, None)
        assert len(result.fingerprint) == 16
        assert result.metrics.external_call_count == 4
        assert result.metrics.cache_hit is False
        assert sorted(docs_client.search_calls) == ["css", "html"]
        assert [c[1:] for c in docs_client.fetch_calls] == [
            ("best practices", 500), ("best practices", 500),
        ]
        assert result.enhanced_prompt.startswith(BUTTON)
        assert "## /html/docs Documentation:" in result.enhanced_prompt
        assert len(result.context_used.docs) == 2

    @pytest.mark.asyncio
    async def test_second_run_served_from_response_cache(self, orchestrator, docs_client):
        first = await orchestrator.run(BUTTON)
        second = await orchestrator.run(BUTTON)

        assert second.success
        assert second.metrics.cache_hit is True
        assert second.metrics.external_call_count == 0
        assert second.enhanced_prompt == first.enhanced_prompt
        assert second.context_used == first.context_used
        assert second.complexity == "simple"
        assert len(docs_client.fetch_calls) == 2

    @pytest.mark.asyncio
    async def test_use_cache_false_skips_response_read_only(self, orchestrator, docs_client):
        first = await orchestrator.run(BUTTON)
        again = await orchestrator.run(BUTTON, options=RequestOptions(use_cache=False))

        assert again.metrics.cache_hit is False
        # Served from the raw context entry, no upstream calls.
        assert again.metrics.external_call_count == 0
        assert again.enhanced_prompt == first.enhanced_prompt
        assert len(docs_client.fetch_calls) == 2

    @pytest.mark.asyncio
    async def test_summarizer_feeds_summarized_cache(
        self, settings, cache_bundle, docs_client, summarizer
    ):
        orchestrator = _orchestrator(settings, cache_bundle, docs_client, summarizer)
        cold = await orchestrator.run(BUTTON)
        assert cold.metrics.external_call_count == 6
        assert cold.cost_usd == pytest.approx(0.002)
        assert "SUMMARY of /html/docs reference" in cold.enhanced_prompt
        assert [t for _, t in summarizer.calls] == [500, 500]

        warm = await orchestrator.run(BUTTON, options=RequestOptions(use_cache=False))
        assert warm.metrics.external_call_count == 0
        assert warm.cost_usd == 0.0
        assert warm.enhanced_prompt == cold.enhanced_prompt
        assert len(summarizer.calls) == 2

        entry = await cache_bundle.summarized.get(cold.project_signature, ["html", "css"])
        assert entry is not None
        assert entry.quality_score == pytest.approx(0.9)

    @pytest.mark.asyncio
    async def test_max_tokens_changes_fingerprint_and_budget(self, orchestrator, docs_client):
        capped = await orchestrator.run(BUTTON, options=RequestOptions(max_tokens=400))
        assert [c[2] for c in docs_client.fetch_calls] == [200, 200]

        plain = await orchestrator.run(BUTTON)
        assert plain.fingerprint != capped.fingerprint
        assert plain.metrics.cache_hit is False

    @pytest.mark.asyncio
    async def test_manifest_changes_signature(self, orchestrator):
        plain = await orchestrator.run(BUTTON)
        react = await orchestrator.run(BUTTON, RequestContext(dependencies=["react"]))

        assert react.project_signature != plain.project_signature
        assert react.fingerprint != plain.fingerprint
        assert react.frameworks == ["react"]
        assert react.metrics.cache_hit is False

    @pytest.mark.asyncio
    async def test_framework_cap(self, settings, cache_bundle, docs_client):
        settings = settings.model_copy(update={"docs_max_frameworks": 1})
        orchestrator = _orchestrator(settings, cache_bundle, docs_client)
        result = await orchestrator.run(BUTTON)
        assert result.frameworks == ["html"]
        assert docs_client.search_calls == ["html"]


class TestDegradation:
    @pytest.mark.asyncio
    async def test_degraded_run_not_cached(self, orchestrator, docs_client):
        docs_client.failing.add("/css/docs")
        first = await orchestrator.run(BUTTON)

        assert first.success
        assert first.degraded
        assert len(first.context_used.docs) == 1

        docs_client.failing.clear()
        second = await orchestrator.run(BUTTON)
        assert second.metrics.cache_hit is False
        assert not second.degraded
        assert len(second.context_used.docs) == 2

    @pytest.mark.asyncio
    async def test_unexpected_docs_error_degrades_one_slot(self, orchestrator, docs_client):
        docs_client.broken["/css/docs"] = RuntimeError("socket closed")
        result = await orchestrator.run(BUTTON)

        assert result.success
        assert result.degraded
        assert "## /html/docs Documentation:" in result.enhanced_prompt
        assert "## /css/docs Documentation:" not in result.enhanced_prompt
        assert len(result.context_used.docs) == 1

    @pytest.mark.asyncio
    async def test_analyzer_failure_continues_without_context(
        self, settings, cache_bundle, docs_client
    ):
        orchestrator = _orchestrator(
            settings, cache_bundle, docs_client, analyzer=BrokenAnalyzer()
        )
        result = await orchestrator.run(BUTTON)

        assert result.success
        assert result.frameworks == []
        assert docs_client.search_calls == []
        assert "## Detected Frameworks/Libraries:" not in result.enhanced_prompt
        assert "## Instructions:" in result.enhanced_prompt

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_request(self, settings, cache_bundle, docs_client):
        curator = MagicMock(spec=ContentCurator)
        curator.curate = AsyncMock(side_effect=RuntimeError("boom"))
        resolver = DocumentationResolver(docs_client, cache_bundle.tiered, timeout_s=0.2)
        orchestrator = PipelineOrchestrator(settings, cache_bundle, resolver, curator)

        result = await orchestrator.run(BUTTON)

        assert not result.success
        assert result.phase == PipelinePhase.FAILED
        assert result.error == "RuntimeError: boom"
        assert result.enhanced_prompt == ""
        assert result.context_used.docs == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("prompt", ["", "   \n"])
    async def test_empty_prompt_raises(self, orchestrator, cache_bundle, prompt):
        with pytest.raises(ValidationError):
            await orchestrator.run(prompt)
        assert cache_bundle.response.stats().total == 0


class TestRequestContextIsolation:
    @pytest.mark.asyncio
    async def test_open_file_splits_response_cache(self, orchestrator, cache_bundle):
        prompt = "Fix the click handler in this component"
        first = await orchestrator.run(
            prompt, RequestContext(file="a.tsx", file_content="const A = () => null;")
        )
        second = await orchestrator.run(
            prompt, RequestContext(file="b.tsx", file_content="const B = () => null;")
        )

        assert second.fingerprint != first.fingerprint
        assert second.metrics.cache_hit is False
        assert second.context_used.code_snippets == ["// b.tsx\nconst B = () => null;"]
        assert "a.tsx" not in second.enhanced_prompt

        raw = await cache_bundle.raw.get(first.project_signature, first.frameworks)
        assert raw is not None
        assert raw.code_snippets == []

    @pytest.mark.asyncio
    async def test_no_request_context_keeps_fingerprint(self, orchestrator):
        bare = await orchestrator.run(BUTTON)
        empty = await orchestrator.run(BUTTON, RequestContext(repo_facts=["   "]))
        assert empty.fingerprint == bare.fingerprint
        assert empty.metrics.cache_hit is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("use_summarizer", [False, True])
    async def test_cached_context_uses_current_style_and_snippet(
        self, settings, cache_bundle, docs_client, summarizer, use_summarizer
    ):
        orchestrator = _orchestrator(
            settings, cache_bundle, docs_client, summarizer if use_summarizer else None
        )
        await orchestrator.run(
            BUTTON,
            RequestContext(framework="react", style="tabs", file="a.tsx", file_content="<A/>"),
        )
        second = await orchestrator.run(
            "Why does my button re-render twice?",
            RequestContext(framework="react", style="spaces", file="b.tsx", file_content="<B/>"),
        )

        assert second.success
        assert second.metrics.cache_hit is False
        assert second.metrics.external_call_count == 0
        assert "- Code style: spaces" in second.enhanced_prompt
        assert "tabs" not in second.enhanced_prompt
        assert second.context_used.code_snippets == ["// b.tsx\n<B/>"]
        assert "Code style: tabs" not in second.context_used.repo_facts

    @pytest.mark.asyncio
    async def test_coalesced_requests_keep_their_own_snippets(self, orchestrator, docs_client):
        docs_client.delays["/react/docs"] = 0.05
        ctx_a = RequestContext(framework="react", file="a.tsx", file_content="<A/>")
        ctx_b = RequestContext(framework="react", file="b.tsx", file_content="<B/>")
        a, b = await asyncio.gather(
            orchestrator.run(BUTTON, ctx_a), orchestrator.run(BUTTON, ctx_b)
        )

        assert a.context_used.code_snippets == ["// a.tsx\n<A/>"]
        assert b.context_used.code_snippets == ["// b.tsx\n<B/>"]
        assert len(docs_client.fetch_calls) == 1


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_run_leaves_no_cache_entries(
        self, orchestrator, docs_client, cache_bundle
    ):
        docs_client.delays.update({"/html/docs": 5.0, "/css/docs": 5.0})
        task = asyncio.create_task(orchestrator.run(BUTTON))
        for _ in range(100):
            if docs_client.fetch_calls:
                break
            await asyncio.sleep(0.005)
        assert docs_client.fetch_calls

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.3)

        for prefix in ("raw:", "summarized:", "response:", "docs:"):
            assert await cache_bundle.tiered.keys(prefix) == []
        assert len(orchestrator._enrich_flight) == 0


class TestTaskBreakdown:
    @pytest.mark.asyncio
    async def test_complex_prompt_gets_breakdown(self, settings, cache_bundle, docs_client):
        breaker = StaticTaskBreaker(["Define the schema", "Write the endpoint"])
        orchestrator = _orchestrator(settings, cache_bundle, docs_client, task_breaker=breaker)

        result = await orchestrator.run(COMPLEX_PROMPT)

        assert result.complexity == "complex"
        assert "## Task Breakdown:\n1. Define the schema\n2. Write the endpoint" in (
            result.enhanced_prompt
        )
        assert breaker.calls == 1

    @pytest.mark.asyncio
    async def test_simple_prompt_skips_breakdown(self, settings, cache_bundle, docs_client):
        breaker = StaticTaskBreaker(["never"])
        orchestrator = _orchestrator(settings, cache_bundle, docs_client, task_breaker=breaker)
        await orchestrator.run(BUTTON)
        assert breaker.calls == 0

    @pytest.mark.asyncio
    async def test_breakdown_failure_is_not_fatal(self, settings, cache_bundle, docs_client):
        breaker = StaticTaskBreaker(error=RuntimeError("llm down"))
        orchestrator = _orchestrator(settings, cache_bundle, docs_client, task_breaker=breaker)
        result = await orchestrator.run(COMPLEX_PROMPT)
        assert result.success
        assert "## Task Breakdown:" not in result.enhanced_prompt


class TestMaintenance:
    @pytest.mark.asyncio
    async def test_invalidate(self, orchestrator):
        result = await orchestrator.run(BUTTON)
        removed = await orchestrator.invalidate(result.project_signature)
        assert removed == {"raw": 1, "summarized": 0, "response": 1}

        again = await orchestrator.run(BUTTON)
        assert again.metrics.cache_hit is False
        # library: and docs: entries are not project scoped
        assert again.metrics.external_call_count == 0

    @pytest.mark.asyncio
    async def test_stats(self, orchestrator):
        await orchestrator.run(BUTTON)
        await orchestrator.run(BUTTON)
        stats = orchestrator.stats()
        assert set(stats) == {"raw", "summarized", "response", "library", "docs"}
        assert stats["response"].hits == 1
        assert stats["response"].misses == 1
        assert stats["library"].misses == 2

    @pytest.mark.asyncio
    async def test_aclose_flushes_stats_and_closes(self, orchestrator, docs_client, tmp_path):
        await orchestrator.run(BUTTON)
        await orchestrator.aclose()
        assert docs_client.closed

        reopened = SqliteCacheStore(db_path=tmp_path / "cache" / "test_cache.db")
        try:
            persisted = await reopened.load_stats()
        finally:
            reopened.close()
        assert persisted["response"] == (0, 1)
        assert persisted["library"] == (0, 2)
