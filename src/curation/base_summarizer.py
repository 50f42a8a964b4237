# src/curation/base_summarizer.py - v1
"""Abstract summarization collaborator.

A summarizer compresses documentation to a target token count and grades
its own output with a scalar quality score in [0, 1]. Implementations
raise ExternalServiceError for transport or payload failures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field


class SummaryResult(BaseModel):
    """Output of one summarization call."""

    summary: str
    quality_score: float = Field(ge=0.0, le=1.0)
    cost_usd: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0


class BaseSummarizer(ABC):
    """Unified interface for summarization providers."""

    @abstractmethod
    async def summarize(self, content: str, target_tokens: int) -> SummaryResult:
        """Compress content to about target_tokens."""

    @abstractmethod
    def estimate_cost(self, content: str, target_tokens: int) -> float:
        """Upper-bound USD cost of summarizing content, before the call."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier used in logs and cost records."""

    async def aclose(self) -> None:
        """Release provider connections. No-op by default."""
