# src/pipeline/collaborators.py - v1
"""Narrow interfaces to the pipeline's pluggable collaborators."""

from __future__ import annotations

from abc import ABC, abstractmethod

from promptlift.core.models import ProjectSignals, RequestContext


class BaseProjectAnalyzer(ABC):
    """Framework detection + project scanning."""

    @abstractmethod
    async def analyze(self, prompt: str, context: RequestContext | None) -> ProjectSignals:
        """Signature, ranked frameworks, repo facts and snippets for a request."""


class BaseTaskBreaker(ABC):
    """Splits a complex request into ordered subtasks."""

    @abstractmethod
    async def breakdown(self, prompt: str, signals: ProjectSignals) -> list[str]:
        """Ordered, human-readable subtasks."""
