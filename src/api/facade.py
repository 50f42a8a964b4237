# src/api/facade.py - v2
"""Public API facade: single entry point for prompt enhancement.

Usage:
    from promptlift.api.facade import create_orchestrator, enhance
    orchestrator = create_orchestrator()
    response = await enhance({"prompt": "How do I create a button?"}, orchestrator)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from promptlift.api.models import EnhanceRequest, EnhanceResponse
from promptlift.cache.base_cache_store import BaseCacheStore
from promptlift.cache.cache_factory import create_cache_bundle
from promptlift.config.settings import Settings
from promptlift.core.errors import ValidationError
from promptlift.curation.base_summarizer import BaseSummarizer
from promptlift.curation.budget import CostBudget
from promptlift.curation.curator_factory import create_curator
from promptlift.docs.base_docs_client import BaseDocsClient
from promptlift.docs.docs_factory import create_resolver
from promptlift.pipeline.collaborators import BaseProjectAnalyzer, BaseTaskBreaker
from promptlift.pipeline.orchestrator import PipelineOrchestrator

logger = logging.getLogger(__name__)


def create_orchestrator(
    settings: Settings | None = None,
    docs_client: BaseDocsClient | None = None,
    summarizer: BaseSummarizer | None = None,
    budget: CostBudget | None = None,
    durable: BaseCacheStore | None = None,
    analyzer: BaseProjectAnalyzer | None = None,
    task_breaker: BaseTaskBreaker | None = None,
    clock: Callable[[], datetime] | None = None,
) -> PipelineOrchestrator:
    """Wire caches, resolver, curator and collaborators from settings.

    Every collaborator can be injected; the rest are built from settings.
    """
    settings = settings or Settings()
    caches = create_cache_bundle(settings, durable=durable, clock=clock)
    resolver = create_resolver(caches.tiered, settings, client=docs_client)
    curator = create_curator(settings, summarizer=summarizer, budget=budget)
    return PipelineOrchestrator(
        settings,
        caches,
        resolver,
        curator,
        analyzer=analyzer,
        task_breaker=task_breaker,
    )


def parse_request(payload: EnhanceRequest | dict[str, Any]) -> EnhanceRequest:
    """Validate a raw payload.

    Raises:
        ValidationError: Missing prompt, wrong types or unknown fields.
    """
    if isinstance(payload, EnhanceRequest):
        return payload
    try:
        return EnhanceRequest.model_validate(payload)
    except PydanticValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationError(f"Invalid request: {details}") from e


async def enhance(
    payload: EnhanceRequest | dict[str, Any],
    orchestrator: PipelineOrchestrator | None = None,
    settings: Settings | None = None,
) -> EnhanceResponse:
    """Enhance a prompt end-to-end.

    Malformed requests come back as success=False without touching any
    cache. Collaborator failures degrade the result but keep success=True.

    Args:
        payload: EnhanceRequest or its dict form (camelCase or snake_case).
        orchestrator: Shared orchestrator. A temporary one is built (and
            closed) from settings when omitted.
        settings: Used only when orchestrator is None.
    """
    try:
        request = parse_request(payload)
        if not request.prompt.strip():
            raise ValidationError("prompt must be a non-empty string")
    except ValidationError as e:
        logger.info("Rejected request: %s", e)
        return EnhanceResponse(success=False, error=str(e))

    owned = orchestrator is None
    if orchestrator is None:
        orchestrator = create_orchestrator(settings)
    try:
        result = await orchestrator.run(request.prompt, request.context, request.options)
    finally:
        if owned:
            await orchestrator.aclose()

    return EnhanceResponse(
        enhanced_prompt=result.enhanced_prompt,
        context_used=result.context_used,
        metrics=result.metrics,
        success=result.success,
        error=result.error,
    )
