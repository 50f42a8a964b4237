# src/llm/models.py - v3
"""Completion contract between the summarizer and the provider adapters.

Summarization is always one system + user exchange, optionally with a
JSON schema the reply has to follow, so the contract is single-turn.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

# Provider stop reasons meaning the output hit max_output_tokens.
TRUNCATION_STOP_REASONS = frozenset({"max_tokens", "length"})


class CompletionRequest(BaseModel):
    """One completion call.

    When json_schema is set the adapter makes the provider return a JSON
    document matching it (forced tool call, response_format, ...).
    """

    system: str = ""
    prompt: str = Field(min_length=1)
    max_output_tokens: int = Field(default=1024, gt=0)
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    json_schema: dict[str, Any] | None = None
    schema_name: str = "structured_output"


class TokenUsage(BaseModel):
    """Token accounting as reported by the provider."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens


class CompletionResult(BaseModel):
    """Normalized provider reply."""

    text: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: str
    provider: str
    latency_ms: int = 0
    stop_reason: str | None = None

    @property
    def truncated(self) -> bool:
        return self.stop_reason in TRUNCATION_STOP_REASONS
