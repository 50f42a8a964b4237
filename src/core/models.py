# src/core/models.py - v3
"""Shared Pydantic domain models used across modules.

Signals produced by the project analyzer and consumed by the cache layer,
the documentation resolver and the pipeline. Cache record shapes live in
cache.models.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ComplexityLevel = Literal["simple", "medium", "complex"]


class CodeSnippet(BaseModel):
    """Excerpt of project code attached to the enriched prompt."""

    model_config = ConfigDict(extra="forbid")

    source: str
    content: str
    relevance: float = Field(default=1.0, ge=0.0, le=1.0)


class FrameworkMatch(BaseModel):
    """One entry of the ranked framework list."""

    model_config = ConfigDict(extra="forbid")

    name: str
    confidence: float = Field(ge=0.0, le=1.0)
    source: Literal["explicit", "manifest", "prompt", "fallback"] = "prompt"


class ProjectSignals(BaseModel):
    """Output of the GatherContext phase.

    repo_facts and code_snippets describe the project and may be cached per
    project signature. request_facts and request_snippets come from this
    request only (style, caller facts, the open file) and are never cached.
    """

    project_signature: str = ""
    project_type: str = "unknown"
    frameworks: list[FrameworkMatch] = Field(default_factory=list)
    repo_facts: list[str] = Field(default_factory=list)
    code_snippets: list[CodeSnippet] = Field(default_factory=list)
    request_facts: list[str] = Field(default_factory=list)
    request_snippets: list[CodeSnippet] = Field(default_factory=list)

    @property
    def framework_names(self) -> list[str]:
        """Framework names in ranking order."""
        return [f.name for f in self.frameworks]


class ComplexityAssessment(BaseModel):
    """Output of the AnalyzeComplexity phase."""

    level: ComplexityLevel
    score: float
    token_budget: int
    indicators: list[str] = Field(default_factory=list)


class RequestContext(BaseModel):
    """Caller-supplied project context. Closed: unknown fields are rejected.

    Accepts snake_case or camelCase keys (fileContent, projectType, ...).
    """

    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True
    )

    framework: str | None = None
    file: str | None = None
    file_content: str | None = None
    style: str | None = None
    project_type: str | None = None
    dependencies: list[str] | dict[str, str] | None = None
    quality_requirements: list[str] = Field(default_factory=list)
    repo_facts: list[str] = Field(default_factory=list)


class RequestOptions(BaseModel):
    """Per-request switches."""

    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True
    )

    use_cache: bool = True
    max_tokens: int | None = Field(default=None, gt=0)
