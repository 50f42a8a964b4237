# src/curation/curator.py - v1
"""Quality-gated documentation curation.

curate() never returns worse content than it was given: whenever the
summarizer is missing, refused by the budget, failing, slow, or not
confident enough, the raw documentation comes back untouched with
quality_score=None.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Literal

from pydantic import BaseModel

from promptlift.cache.models import CuratedDoc, LibraryDoc
from promptlift.core.errors import BudgetExceededError, ExternalServiceError
from promptlift.curation.base_summarizer import BaseSummarizer
from promptlift.curation.budget import CostBudget

logger = logging.getLogger(__name__)

CurationReason = Literal[
    "curated",
    "no_summarizer",
    "budget_exceeded",
    "service_error",
    "timeout",
    "low_quality",
    "empty",
]


class CurationResult(BaseModel):
    """Outcome of one curate() call."""

    content: str
    quality_score: float | None = None
    curated: bool = False
    reason: CurationReason
    cost_usd: float = 0.0
    external_calls: int = 0

    def to_curated_doc(self, raw_doc: LibraryDoc) -> CuratedDoc:
        return CuratedDoc(
            library=raw_doc.library,
            library_id=raw_doc.library_id,
            content=self.content,
            curated=self.curated,
            quality_score=self.quality_score,
        )


class ContentCurator:
    """Compresses documentation through a summarizer behind a quality gate.

    Args:
        summarizer: Summarization collaborator; None disables curation.
        budget: Cost ceilings; None means unlimited.
        quality_threshold: Minimum quality score to accept a summary.
        timeout_s: Upper bound on one summarization call.
    """

    def __init__(
        self,
        summarizer: BaseSummarizer | None,
        budget: CostBudget | None = None,
        quality_threshold: float = 0.6,
        timeout_s: float = 10.0,
    ) -> None:
        if not 0.0 <= quality_threshold <= 1.0:
            raise ValueError("quality_threshold must be within [0, 1]")
        self._summarizer = summarizer
        self._budget = budget
        self._threshold = quality_threshold
        self._timeout_s = timeout_s

    @property
    def enabled(self) -> bool:
        return self._summarizer is not None

    @property
    def budget(self) -> CostBudget | None:
        return self._budget

    async def aclose(self) -> None:
        if self._summarizer is not None:
            await self._summarizer.aclose()

    async def curate(self, raw_doc: LibraryDoc, token_budget: int) -> CurationResult:
        """Summarize raw_doc.content to about token_budget tokens."""
        original = raw_doc.content
        if not original.strip():
            return CurationResult(content=original, reason="empty")
        if self._summarizer is None:
            return CurationResult(content=original, reason="no_summarizer")

        if self._budget is not None:
            try:
                self._budget.check(self._summarizer.estimate_cost(original, token_budget))
            except BudgetExceededError as e:
                logger.info("Curation of %s skipped: %s", raw_doc.library_id, e)
                return CurationResult(content=original, reason="budget_exceeded")

        try:
            summary = await asyncio.wait_for(
                self._summarizer.summarize(original, token_budget), timeout=self._timeout_s
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Curation of %s timed out after %.1fs; using raw documentation",
                raw_doc.library_id, self._timeout_s,
            )
            return CurationResult(content=original, reason="timeout", external_calls=1)
        except ExternalServiceError as e:
            logger.warning("Curation of %s failed: %s; using raw documentation",
                           raw_doc.library_id, e)
            return CurationResult(content=original, reason="service_error", external_calls=1)

        if self._budget is not None:
            self._budget.record(summary.cost_usd)

        if summary.quality_score < self._threshold or not summary.summary.strip():
            logger.info(
                "Summary of %s rejected (quality %.2f < %.2f); using raw documentation",
                raw_doc.library_id, summary.quality_score, self._threshold,
            )
            return CurationResult(
                content=original,
                reason="low_quality",
                cost_usd=summary.cost_usd,
                external_calls=1,
            )

        return CurationResult(
            content=summary.summary,
            quality_score=summary.quality_score,
            curated=True,
            reason="curated",
            cost_usd=summary.cost_usd,
            external_calls=1,
        )
