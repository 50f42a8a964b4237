# src/llm/base_client.py - v3
"""Abstract LLM client used by the summarizer."""

from __future__ import annotations

from abc import ABC, abstractmethod

from promptlift.llm.models import CompletionRequest, CompletionResult


class BaseLLMClient(ABC):
    """Provider-neutral completion client.

    Provider SDK exceptions propagate unchanged so llm.retry can classify
    them from their HTTP status.
    """

    @abstractmethod
    async def complete(self, request: CompletionRequest) -> CompletionResult:
        """Run one completion."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (anthropic, openai)."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Configured model; keys the pricing table."""

    async def aclose(self) -> None:
        """Release the underlying SDK client, if any."""
