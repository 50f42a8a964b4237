# src/pipeline/state.py - v3
r"""Per-request pipeline state and the phase state machine.

  GATHER_CONTEXT -> ANALYZE_COMPLEXITY -> ENRICH -> BUILD_RESPONSE -> DONE
                \___________________________________________________-> FAILED
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from promptlift.cache.models import ContextUsed, CuratedDoc
from promptlift.core.models import CodeSnippet, ComplexityAssessment, ProjectSignals


class PipelinePhase(str, Enum):
    GATHER_CONTEXT = "gather_context"
    ANALYZE_COMPLEXITY = "analyze_complexity"
    ENRICH = "enrich"
    BUILD_RESPONSE = "build_response"
    DONE = "done"
    FAILED = "failed"


_NEXT_PHASE: dict[PipelinePhase, PipelinePhase] = {
    PipelinePhase.GATHER_CONTEXT: PipelinePhase.ANALYZE_COMPLEXITY,
    PipelinePhase.ANALYZE_COMPLEXITY: PipelinePhase.ENRICH,
    PipelinePhase.ENRICH: PipelinePhase.BUILD_RESPONSE,
    PipelinePhase.BUILD_RESPONSE: PipelinePhase.DONE,
}

TERMINAL_PHASES = frozenset({PipelinePhase.DONE, PipelinePhase.FAILED})


class InvalidTransitionError(RuntimeError):
    """Raised on a phase transition the state machine does not allow."""


class EnrichedContext(BaseModel):
    """Output of the Enrich phase."""

    repo_facts: list[str] = Field(default_factory=list)
    code_snippets: list[CodeSnippet] = Field(default_factory=list)
    docs: list[CuratedDoc] = Field(default_factory=list)
    source: Literal["summarized", "raw", "fresh", "none"] = "none"
    degraded: bool = False
    external_calls: int = 0
    cost_usd: float = 0.0


class PipelineState(BaseModel):
    """Mutable state accumulating results across the phases of one request."""

    # === IDENTITY ===
    request_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    prompt: str
    phase: PipelinePhase = PipelinePhase.GATHER_CONTEXT
    phases_completed: list[PipelinePhase] = Field(default_factory=list)

    # === GATHER_CONTEXT ===
    signals: ProjectSignals = Field(default_factory=ProjectSignals)
    quality_requirements: list[str] = Field(default_factory=list)
    fingerprint: str = ""

    # === ANALYZE_COMPLEXITY ===
    complexity: ComplexityAssessment | None = None

    # === ENRICH ===
    context: EnrichedContext | None = None
    tasks: list[str] = Field(default_factory=list)

    # === BUILD_RESPONSE ===
    enhanced_prompt: str = ""
    context_used: ContextUsed = Field(default_factory=ContextUsed)

    # === STATS ===
    cache_hit: bool = False
    external_call_count: int = 0
    warnings: list[str] = Field(default_factory=list)
    error: str | None = None

    @property
    def done(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def advance(self) -> PipelinePhase:
        """Move to the next phase in order."""
        if self.phase not in _NEXT_PHASE:
            raise InvalidTransitionError(f"No phase after {self.phase.value}")
        self.phases_completed.append(self.phase)
        self.phase = _NEXT_PHASE[self.phase]
        return self.phase

    def finish_from_cache(self) -> None:
        """Short-circuit to DONE on a response cache hit."""
        if self.done:
            raise InvalidTransitionError(f"Already terminal: {self.phase.value}")
        self.phases_completed.append(self.phase)
        self.phase = PipelinePhase.DONE
        self.cache_hit = True

    def fail(self, error: str) -> None:
        """FAILED is reachable from every non-terminal phase."""
        if self.done:
            raise InvalidTransitionError(f"Already terminal: {self.phase.value}")
        self.error = error
        self.phase = PipelinePhase.FAILED
