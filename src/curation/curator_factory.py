# src/curation/curator_factory.py - v2
"""Factory for the content curator from settings."""

from __future__ import annotations

import logging

from promptlift.config.settings import Settings
from promptlift.curation.base_summarizer import BaseSummarizer
from promptlift.curation.budget import CostBudget
from promptlift.curation.curator import ContentCurator
from promptlift.llm.client_factory import api_key_for, provider_info

logger = logging.getLogger(__name__)


def create_summarizer(settings: Settings | None = None) -> BaseSummarizer | None:
    """LLM-backed summarizer, or None when disabled or not credentialed."""
    settings = settings or Settings()
    if not settings.summarizer_enabled:
        return None

    provider = settings.summarizer_provider
    if provider_info(provider).api_key_field and not api_key_for(provider, settings):
        logger.info("No API key for summarizer provider %s; curation disabled", provider)
        return None

    from promptlift.curation.llm_summarizer import LLMSummarizer
    from promptlift.llm.client_factory import create_llm_client

    client = create_llm_client(
        provider,
        settings.summarizer_model,
        settings=settings,
        timeout_s=settings.summarizer_timeout_s,
    )
    return LLMSummarizer(client)


def create_curator(
    settings: Settings | None = None,
    summarizer: BaseSummarizer | None = None,
    budget: CostBudget | None = None,
) -> ContentCurator:
    settings = settings or Settings()
    if summarizer is None:
        summarizer = create_summarizer(settings)
    if budget is None:
        budget = CostBudget(
            per_call_ceiling_usd=settings.cost_per_call_ceiling_usd,
            monthly_ceiling_usd=settings.cost_monthly_ceiling_usd,
        )
    return ContentCurator(
        summarizer,
        budget=budget,
        quality_threshold=settings.quality_threshold,
        timeout_s=settings.summarizer_timeout_s,
    )
