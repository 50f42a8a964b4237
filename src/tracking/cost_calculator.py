# src/tracking/cost_calculator.py - v3
"""USD pricing of summarizer calls: after the fact and before the call."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from promptlift.llm.models import CompletionResult
from promptlift.tracking.models import ModelPricing, SpendRecord

logger = logging.getLogger(__name__)

DEFAULT_PRICING: dict[str, ModelPricing] = {
    p.model: p
    for p in (
        ModelPricing(
            model="claude-sonnet-4-20250514",
            input_per_1m=3.0, output_per_1m=15.0,
            cache_read_per_1m=0.3, cache_write_per_1m=3.75,
        ),
        ModelPricing(
            model="claude-haiku-4-5-20251001",
            input_per_1m=0.80, output_per_1m=4.0,
            cache_read_per_1m=0.08, cache_write_per_1m=1.0,
        ),
        ModelPricing(
            model="gpt-4o",
            input_per_1m=2.50, output_per_1m=10.0, cache_read_per_1m=1.25,
        ),
        ModelPricing(
            model="gpt-4o-mini",
            input_per_1m=0.15, output_per_1m=0.60, cache_read_per_1m=0.075,
        ),
    )
}

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Rough token count of a text (4 characters per token)."""
    return max(1, len(text) // CHARS_PER_TOKEN) if text else 0


def pricing_for(
    model: str,
    pricing: dict[str, ModelPricing] | None = None,
    pessimistic: bool = False,
) -> ModelPricing | None:
    """Price entry of a model.

    Exact id first, then the longest table key the id starts with
    (dated snapshots such as gpt-4o-2024-08-06). With pessimistic=True an
    unknown model gets the most expensive entry instead of None.
    """
    table = DEFAULT_PRICING if pricing is None else pricing
    if model in table:
        return table[model]
    prefixes = [key for key in table if model.startswith(key)]
    if prefixes:
        return table[max(prefixes, key=len)]
    if pessimistic and table:
        return max(table.values(), key=lambda p: p.output_per_1m)
    return None


def price_call(
    result: CompletionResult,
    pricing: dict[str, ModelPricing] | None = None,
    now: datetime | None = None,
) -> SpendRecord:
    """Spend record of a finished call, from its reported token usage."""
    entry = pricing_for(result.model, pricing)
    if entry is None:
        logger.warning("No pricing for model %s; recording the call at $0", result.model)
    return SpendRecord(
        timestamp=now or datetime.now(timezone.utc),
        provider=result.provider,
        model=result.model,
        usage=result.usage,
        cost_usd=entry.cost_of(result.usage) if entry else 0.0,
        latency_ms=result.latency_ms,
        priced=entry is not None,
    )


def estimate_call_cost(
    model: str,
    input_tokens: int,
    output_tokens: int,
    pricing: dict[str, ModelPricing] | None = None,
) -> float:
    """Upper-bound cost of a call before it is made.

    Unknown models are priced at the most expensive known model, so a
    budget check refuses rather than overspends.
    """
    entry = pricing_for(model, pricing, pessimistic=True)
    if entry is None:
        return 0.0
    return (input_tokens * entry.input_per_1m + output_tokens * entry.output_per_1m) / 1_000_000
