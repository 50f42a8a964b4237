# src/tracking/models.py - v3
"""Pricing table entries and the spend record of one summarizer call."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from promptlift.llm.models import TokenUsage


class ModelPricing(BaseModel):
    """Prices of one model, USD per 1M tokens."""

    model: str
    input_per_1m: float = Field(ge=0.0)
    output_per_1m: float = Field(ge=0.0)
    cache_read_per_1m: float = Field(default=0.0, ge=0.0)
    cache_write_per_1m: float = Field(default=0.0, ge=0.0)

    def cost_of(self, usage: TokenUsage) -> float:
        return (
            usage.input_tokens * self.input_per_1m
            + usage.output_tokens * self.output_per_1m
            + usage.cache_read_tokens * self.cache_read_per_1m
            + usage.cache_write_tokens * self.cache_write_per_1m
        ) / 1_000_000


class SpendRecord(BaseModel):
    """What one completed call cost. priced=False means the model had no price."""

    timestamp: datetime
    provider: str
    model: str
    usage: TokenUsage
    cost_usd: float = 0.0
    latency_ms: int = 0
    priced: bool = True
