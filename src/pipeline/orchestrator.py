# src/pipeline/orchestrator.py - v3
"""Pipeline orchestrator: one enhancement request through four phases.

  Phase 1: GatherContext     project signature, framework ranking, repo facts
  Phase 2: AnalyzeComplexity level + token budget (pure)
  Phase 3: Enrich            summarized -> raw -> fresh docs, curation, breakdown
  Phase 4: BuildResponse     deterministic assembly, response cache write

A response cache hit after phase 1 short-circuits to DONE. Phase 3 is
coalesced per (context key, topic, token budget), so concurrent requests
for the same project and frameworks share one round of upstream calls.
Degraded runs (a documentation slot failed) are returned but never cached.

Context caches hold project-level facts only. The open file, code style and
caller facts of a request are folded into its fingerprint and merged into
the enriched context after phase 3.
"""

from __future__ import annotations

import asyncio
import logging
import time
from statistics import mean

from pydantic import BaseModel, Field

from promptlift.cache.cache_factory import CacheBundle
from promptlift.cache.coalescer import SingleFlight
from promptlift.cache.fingerprint import (
    compute_context_key,
    compute_fingerprint,
    compute_project_signature,
    compute_request_digest,
)
from promptlift.cache.models import (
    CacheStats,
    ContextUsed,
    CuratedDoc,
    LibraryDoc,
    ResponseMetrics,
)
from promptlift.config.settings import Settings
from promptlift.core.errors import ValidationError
from promptlift.core.models import (
    CodeSnippet,
    ComplexityLevel,
    ProjectSignals,
    RequestContext,
    RequestOptions,
)
from promptlift.curation.curator import ContentCurator
from promptlift.docs.resolver import DocumentationResolver
from promptlift.docs.topics import extract_topic
from promptlift.logging.context import bind_log_context, request_scope
from promptlift.pipeline.collaborators import BaseProjectAnalyzer, BaseTaskBreaker
from promptlift.pipeline.complexity import analyze_complexity
from promptlift.pipeline.project_analyzer import ManifestProjectAnalyzer
from promptlift.pipeline.response_builder import (
    build_context_used,
    build_enhanced_prompt,
    truncate_to_tokens,
)
from promptlift.pipeline.state import EnrichedContext, PipelinePhase, PipelineState
from promptlift.tracking.cost_calculator import estimate_tokens

logger = logging.getLogger(__name__)

MAX_SUMMARIZED_FACT_CHARS = 200


class PipelineResult(BaseModel):
    """What run() hands back to the facade."""

    request_id: str
    success: bool
    enhanced_prompt: str = ""
    context_used: ContextUsed = Field(default_factory=ContextUsed)
    metrics: ResponseMetrics = Field(default_factory=ResponseMetrics)
    error: str | None = None
    phase: PipelinePhase
    fingerprint: str = ""
    project_signature: str = ""
    frameworks: list[str] = Field(default_factory=list)
    complexity: ComplexityLevel | None = None
    degraded: bool = False
    cost_usd: float = 0.0


class PipelineOrchestrator:
    """Drives enhancement requests through the phase state machine.

    Args:
        settings: Application settings.
        caches: Tiered cache and its raw / summarized / response views.
        resolver: Documentation resolver; None disables documentation.
        curator: Content curator (a curator without summarizer passes docs through).
        analyzer: Project analyzer collaborator (defaults to ManifestProjectAnalyzer).
        task_breaker: Optional task breakdown collaborator for complex prompts.
    """

    def __init__(
        self,
        settings: Settings,
        caches: CacheBundle,
        resolver: DocumentationResolver | None,
        curator: ContentCurator,
        analyzer: BaseProjectAnalyzer | None = None,
        task_breaker: BaseTaskBreaker | None = None,
    ) -> None:
        self._settings = settings
        self._caches = caches
        self._resolver = resolver
        self._curator = curator
        self._analyzer = analyzer or ManifestProjectAnalyzer()
        self._task_breaker = task_breaker
        self._enrich_flight: SingleFlight[EnrichedContext] = SingleFlight("enrich")
        self._token_budgets = {
            "simple": settings.token_budget_simple,
            "medium": settings.token_budget_medium,
            "complex": settings.token_budget_complex,
        }

    @property
    def caches(self) -> CacheBundle:
        return self._caches

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(
        self,
        prompt: str,
        context: RequestContext | None = None,
        options: RequestOptions | None = None,
    ) -> PipelineResult:
        """Execute the pipeline for one request.

        Raises:
            ValidationError: Empty prompt. Nothing is read from or written to caches.
        """
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValidationError("prompt must be a non-empty string")
        context = context or RequestContext()
        options = options or RequestOptions()

        start = time.monotonic()
        state = PipelineState(prompt=prompt)
        with request_scope(state.request_id):
            try:
                # Phase 1: GatherContext
                bind_log_context(phase=state.phase.value)
                await self._gather(state, context, options)

                if options.use_cache:
                    result = await self._from_response_cache(state, start)
                    if result is not None:
                        return result

                # Phase 2: AnalyzeComplexity
                bind_log_context(phase=state.advance().value)
                state.complexity = analyze_complexity(
                    prompt, self._token_budgets, max_tokens=options.max_tokens
                )

                # Phase 3: Enrich
                bind_log_context(phase=state.advance().value)
                await self._enrich(state)

                # Phase 4: BuildResponse
                bind_log_context(phase=state.advance().value)
                metrics = await self._build_response(state, start)

                state.advance()
                logger.info(
                    "Enhancement done: %s, %d external calls, $%.6f, %dms%s",
                    state.complexity.level, metrics.external_call_count,
                    state.context.cost_usd, metrics.processing_time_ms,
                    " (degraded, not cached)" if state.context.degraded else "",
                )
                return self._result(state, metrics)

            except Exception as e:
                logger.exception("Pipeline failed in phase %s", state.phase.value)
                state.fail(f"{type(e).__name__}: {e}")
                return self._result(
                    state, ResponseMetrics(processing_time_ms=_elapsed_ms(start))
                )

    # ------------------------------------------------------------------
    # Phase 1: GatherContext
    # ------------------------------------------------------------------

    async def _gather(
        self, state: PipelineState, context: RequestContext, options: RequestOptions
    ) -> None:
        try:
            signals = await self._analyzer.analyze(state.prompt, context)
        except Exception as e:
            logger.warning("Project analysis failed, continuing without context: %s", e)
            signals = ProjectSignals(
                project_signature=compute_project_signature(
                    context.dependencies, context.project_type
                ),
            )

        cap = self._settings.docs_max_frameworks
        if len(signals.frameworks) > cap:
            signals = signals.model_copy(update={"frameworks": signals.frameworks[:cap]})
        state.signals = signals

        requirements = list(context.quality_requirements)
        if options.max_tokens is not None:
            requirements.append(f"max_tokens:{options.max_tokens}")
        digest = compute_request_digest(
            context.file, context.file_content, context.style, context.repo_facts
        )
        if digest:
            requirements.append(f"context:{digest}")
        state.quality_requirements = requirements

        state.fingerprint = compute_fingerprint(
            state.prompt, signals.project_signature, signals.framework_names, requirements
        )
        bind_log_context(fingerprint=state.fingerprint)

    async def _from_response_cache(
        self, state: PipelineState, start: float
    ) -> PipelineResult | None:
        entry = await self._caches.response.get(state.fingerprint)
        if entry is None:
            return None
        state.finish_from_cache()
        state.enhanced_prompt = entry.enhanced_prompt
        state.context_used = entry.context_used
        logger.info("Response cache hit")
        return self._result(
            state,
            ResponseMetrics(
                processing_time_ms=_elapsed_ms(start),
                external_call_count=0,
                cache_hit=state.cache_hit,
            ),
            complexity=entry.complexity,
        )

    # ------------------------------------------------------------------
    # Phase 3: Enrich
    # ------------------------------------------------------------------

    async def _enrich(self, state: PipelineState) -> None:
        assert state.complexity is not None
        signals = state.signals
        frameworks = signals.framework_names
        topic = extract_topic(state.prompt)
        budget = state.complexity.token_budget
        key = "|".join(
            (compute_context_key(signals.project_signature, frameworks), topic, str(budget))
        )

        enriched, leader = await self._enrich_flight.do(
            key, lambda: self._enrich_context(signals, frameworks, topic, budget)
        )
        if not leader:
            enriched = enriched.model_copy(update={"external_calls": 0})
        state.context = _with_request_parts(enriched, signals)
        state.external_call_count += enriched.external_calls

        if state.complexity.level == "complex" and self._task_breaker is not None:
            try:
                state.tasks = await self._task_breaker.breakdown(state.prompt, signals)
            except Exception as e:
                logger.warning("Task breakdown failed, continuing without it: %s", e)
                state.warnings.append("task breakdown unavailable")

    async def _enrich_context(
        self,
        signals: ProjectSignals,
        frameworks: list[str],
        topic: str,
        token_budget: int,
    ) -> EnrichedContext:
        signature = signals.project_signature

        summarized = await self._caches.summarized.get(signature, frameworks)
        if summarized is not None:
            logger.debug("Enrich: summarized context hit")
            return EnrichedContext(
                repo_facts=summarized.summarized_facts,
                code_snippets=summarized.summarized_snippets,
                docs=summarized.summarized_docs,
                source="summarized",
            )

        raw = await self._caches.raw.get(signature, frameworks)
        if raw is not None:
            logger.debug("Enrich: raw context hit, curating %d docs", len(raw.raw_docs))
            docs, calls, cost = await self._curate_all(raw.raw_docs, token_budget)
            await self._store_summarized(
                signature, frameworks, raw.repo_facts, raw.code_snippets,
                raw.raw_docs, docs, token_budget,
            )
            return EnrichedContext(
                repo_facts=raw.repo_facts,
                code_snippets=raw.code_snippets,
                docs=docs,
                source="raw",
                external_calls=calls,
                cost_usd=cost,
            )

        logger.debug("Enrich: cold, fetching docs for %s", frameworks)
        calls = 0
        degraded = False
        raw_docs: list[LibraryDoc] = []
        if frameworks and self._resolver is not None:
            slots = await self._resolver.fetch_many(frameworks, topic, token_budget)
            calls += sum(s.external_calls for s in slots)
            degraded = any(not s.ok for s in slots)
            raw_docs = [
                LibraryDoc(library=s.framework, library_id=s.library_id or s.framework,
                           content=s.content)
                for s in slots
                if s.ok and s.content
            ]

        docs, curate_calls, cost = await self._curate_all(raw_docs, token_budget)
        calls += curate_calls

        if not degraded:
            await self._caches.raw.set(
                signature, frameworks, signals.repo_facts, signals.code_snippets, raw_docs
            )
            await self._store_summarized(
                signature, frameworks, signals.repo_facts, signals.code_snippets,
                raw_docs, docs, token_budget,
            )

        return EnrichedContext(
            repo_facts=signals.repo_facts,
            code_snippets=signals.code_snippets,
            docs=docs,
            source="fresh",
            degraded=degraded,
            external_calls=calls,
            cost_usd=cost,
        )

    async def _curate_all(
        self, raw_docs: list[LibraryDoc], token_budget: int
    ) -> tuple[list[CuratedDoc], int, float]:
        if not raw_docs:
            return [], 0, 0.0
        per_doc = max(1, token_budget // len(raw_docs))
        results = await asyncio.gather(
            *(self._curator.curate(doc, per_doc) for doc in raw_docs)
        )
        docs = [r.to_curated_doc(d) for r, d in zip(results, raw_docs)]
        return (
            docs,
            sum(r.external_calls for r in results),
            sum(r.cost_usd for r in results),
        )

    async def _store_summarized(
        self,
        signature: str,
        frameworks: list[str],
        repo_facts: list[str],
        code_snippets: list[CodeSnippet],
        raw_docs: list[LibraryDoc],
        docs: list[CuratedDoc],
        token_budget: int,
    ) -> None:
        """Write a summarized entry when at least one doc was actually curated."""
        curated = [d for d in docs if d.curated and d.quality_score is not None]
        if not curated:
            return

        facts: list[str] = []
        for fact in repo_facts:
            short = fact.strip()[:MAX_SUMMARIZED_FACT_CHARS]
            if short and short not in facts:
                facts.append(short)
        snippet_budget = max(1, token_budget // 4)
        snippets = [
            s.model_copy(update={"content": truncate_to_tokens(s.content, snippet_budget)})
            for s in code_snippets
        ]

        original_tokens = sum(estimate_tokens(d.content) for d in raw_docs) + sum(
            estimate_tokens(f) for f in repo_facts
        )
        summarized_tokens = sum(estimate_tokens(d.content) for d in docs) + sum(
            estimate_tokens(f) for f in facts
        )
        await self._caches.summarized.set(
            signature,
            frameworks,
            summarized_facts=facts,
            summarized_docs=docs,
            summarized_snippets=snippets,
            original_token_count=original_tokens,
            summarized_token_count=summarized_tokens,
            quality_score=mean(d.quality_score for d in curated),
        )

    # ------------------------------------------------------------------
    # Phase 4: BuildResponse
    # ------------------------------------------------------------------

    async def _build_response(self, state: PipelineState, start: float) -> ResponseMetrics:
        assert state.complexity is not None and state.context is not None
        enriched = state.context
        state.context_used = build_context_used(
            enriched.repo_facts, enriched.code_snippets, enriched.docs, state.complexity
        )
        state.enhanced_prompt = build_enhanced_prompt(
            state.prompt,
            state.signals.framework_names,
            state.context_used,
            state.complexity,
            tasks=state.tasks,
        )
        metrics = ResponseMetrics(
            processing_time_ms=_elapsed_ms(start),
            external_call_count=state.external_call_count,
            cache_hit=state.cache_hit,
        )
        if not enriched.degraded:
            await self._caches.response.set(
                state.fingerprint,
                state.signals.project_signature,
                state.prompt,
                state.enhanced_prompt,
                state.context_used,
                state.complexity.level,
                metrics,
            )
        return metrics

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def invalidate(self, project_signature: str) -> dict[str, int]:
        """Drop every raw, summarized and response entry of a project."""
        removed = {
            "raw": await self._caches.raw.invalidate_by_project_signature(project_signature),
            "summarized": await self._caches.summarized.invalidate_by_project_signature(
                project_signature
            ),
            "response": await self._caches.response.invalidate_by_project_signature(
                project_signature
            ),
        }
        return removed

    def stats(self) -> dict[str, CacheStats]:
        return {
            "raw": self._caches.raw.stats(),
            "summarized": self._caches.summarized.stats(),
            "response": self._caches.response.stats(),
            "library": self._caches.tiered.stats("library"),
            "docs": self._caches.tiered.stats("docs"),
        }

    async def aclose(self) -> None:
        try:
            await self._caches.tiered.flush_stats()
            if self._resolver is not None:
                await self._resolver.client.aclose()
            await self._curator.aclose()
        finally:
            self._caches.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _result(
        state: PipelineState,
        metrics: ResponseMetrics,
        complexity: ComplexityLevel | None = None,
    ) -> PipelineResult:
        if complexity is None and state.complexity is not None:
            complexity = state.complexity.level
        success = state.phase == PipelinePhase.DONE
        return PipelineResult(
            request_id=state.request_id,
            success=success,
            enhanced_prompt=state.enhanced_prompt if success else "",
            context_used=state.context_used if success else ContextUsed(),
            metrics=metrics,
            error=state.error,
            phase=state.phase,
            fingerprint=state.fingerprint,
            project_signature=state.signals.project_signature,
            frameworks=state.signals.framework_names,
            complexity=complexity,
            degraded=state.context.degraded if state.context is not None else False,
            cost_usd=state.context.cost_usd if state.context is not None else 0.0,
        )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _with_request_parts(enriched: EnrichedContext, signals: ProjectSignals) -> EnrichedContext:
    """Append this request's own facts and snippets to project-level context.

    Cached and coalesced contexts carry project-level parts only.
    """
    if not signals.request_facts and not signals.request_snippets:
        return enriched
    facts = list(enriched.repo_facts)
    facts.extend(f for f in signals.request_facts if f not in facts)
    return enriched.model_copy(
        update={
            "repo_facts": facts,
            "code_snippets": [*enriched.code_snippets, *signals.request_snippets],
        }
    )
