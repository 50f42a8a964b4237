# src/curation/llm_summarizer.py - v2
"""Summarization collaborator backed by a BaseLLMClient.

The model has to answer with a report_summary JSON document
({"summary": ..., "quality_score": ...}); adapters enforce the schema
natively. A payload that still does not validate goes through the
parse_error retry policy before the call is reported as failed.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from promptlift.core.errors import ExternalServiceError
from promptlift.curation.base_summarizer import BaseSummarizer, SummaryResult
from promptlift.llm.base_client import BaseLLMClient
from promptlift.llm.models import CompletionRequest
from promptlift.llm.retry import LLMRetryExhausted, RetryConfig, with_retry
from promptlift.tracking.cost_calculator import estimate_call_cost, estimate_tokens, price_call
from promptlift.tracking.models import ModelPricing

logger = logging.getLogger(__name__)

SERVICE = "summarizer"
SCHEMA_NAME = "report_summary"

_SYSTEM_PROMPT = (
    "You compress framework documentation for a code-generation assistant. "
    "Keep API names, signatures, code examples and concrete rules; drop "
    "marketing, history and navigation text. Never invent APIs. "
    "Then rate how faithfully and usefully your summary preserves the "
    "original on a scale from 0.0 to 1.0. "
    'Reply with JSON only: {"summary": "...", "quality_score": 0.0}'
)

# Instruction overhead added to every request, in tokens.
_PROMPT_OVERHEAD_TOKENS = 150
# Headroom over the target for the JSON envelope and the score.
_OUTPUT_HEADROOM_TOKENS = 200


class _SummaryPayload(BaseModel):
    summary: str = Field(min_length=1)
    quality_score: float = Field(ge=0.0, le=1.0)


class SummaryTruncatedError(RuntimeError):
    """The reply hit max_output_tokens; retrying would truncate again."""


class LLMSummarizer(BaseSummarizer):
    """Summarizes with an LLM and reports the real cost from token usage.

    Args:
        client: LLM client (Anthropic, OpenAI, ...).
        pricing: Pricing table override (defaults to DEFAULT_PRICING).
        retry_configs: Retry policy override for with_retry.
    """

    def __init__(
        self,
        client: BaseLLMClient,
        pricing: dict[str, ModelPricing] | None = None,
        retry_configs: dict[str, RetryConfig] | None = None,
    ) -> None:
        self._client = client
        self._pricing = pricing
        self._retry_configs = retry_configs

    @property
    def name(self) -> str:
        return f"{self._client.provider_name}:{self._client.model_name}"

    def estimate_cost(self, content: str, target_tokens: int) -> float:
        return estimate_call_cost(
            self._client.model_name,
            input_tokens=estimate_tokens(content) + _PROMPT_OVERHEAD_TOKENS,
            output_tokens=target_tokens + 50,
            pricing=self._pricing,
        )

    async def summarize(self, content: str, target_tokens: int) -> SummaryResult:
        try:
            return await with_retry(
                self._call,
                content,
                target_tokens,
                operation=SERVICE,
                retry_configs=self._retry_configs,
            )
        except LLMRetryExhausted as e:
            raise ExternalServiceError(SERVICE, str(e.last_error)) from e

    async def aclose(self) -> None:
        await self._client.aclose()

    def build_request(self, content: str, target_tokens: int) -> CompletionRequest:
        return CompletionRequest(
            system=_SYSTEM_PROMPT,
            prompt=(
                f"Summarize the documentation below in at most {target_tokens} tokens.\n\n"
                f"<documentation>\n{content}\n</documentation>"
            ),
            max_output_tokens=target_tokens + _OUTPUT_HEADROOM_TOKENS,
            temperature=0.0,
            json_schema=_SummaryPayload.model_json_schema(),
            schema_name=SCHEMA_NAME,
        )

    async def _call(self, content: str, target_tokens: int) -> SummaryResult:
        result = await self._client.complete(self.build_request(content, target_tokens))
        if result.truncated:
            raise SummaryTruncatedError("summary cut off at max_output_tokens")
        try:
            payload = _SummaryPayload.model_validate_json(_strip_fences(result.text))
        except PydanticValidationError as e:
            # "parse" in the message routes this to the parse_error policy
            raise ValueError(f"Summarizer JSON parse failed: {e.error_count()} errors") from e

        spend = price_call(result, self._pricing)
        logger.debug(
            "Summarized %d -> %d tokens (quality %.2f, $%.5f, %dms)",
            result.usage.input_tokens, result.usage.output_tokens,
            payload.quality_score, spend.cost_usd, result.latency_ms,
        )
        return SummaryResult(
            summary=payload.summary.strip(),
            quality_score=payload.quality_score,
            cost_usd=spend.cost_usd,
            input_tokens=result.usage.input_tokens,
            output_tokens=result.usage.output_tokens,
        )


def _strip_fences(text: str) -> str:
    """Drop a ```json fence some models wrap around JSON output."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()
