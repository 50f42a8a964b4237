# src/cache/models.py - v2
"""Cache domain models: per-tier records, response metrics, cache stats.

Every record is a closed shape (extra="forbid"): an unknown field in a
stored payload fails validation and the entry is treated as corrupted.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from promptlift.core.models import CodeSnippet, ComplexityLevel


class CacheRecord(BaseModel):
    """Common envelope fields for anything stored in the tiered cache."""

    model_config = ConfigDict(extra="forbid")

    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """Lazy expiry check: an entry is absent from expires_at onwards."""
        return now >= self.expires_at


class LibraryDoc(BaseModel):
    """Raw documentation fetched for one library."""

    model_config = ConfigDict(extra="forbid")

    library: str
    library_id: str
    content: str


class CuratedDoc(BaseModel):
    """Documentation after the curator's quality gate.

    quality_score is None when the content is the uncurated original.
    """

    model_config = ConfigDict(extra="forbid")

    library: str
    library_id: str
    content: str
    curated: bool = False
    quality_score: float | None = Field(default=None, ge=0.0, le=1.0)


class RawContextEntry(CacheRecord):
    """Gathered facts, snippets and docs for a project + framework pair."""

    fingerprint_prefix: str
    project_signature: str
    frameworks: list[str] = Field(default_factory=list)
    repo_facts: list[str] = Field(default_factory=list)
    code_snippets: list[CodeSnippet] = Field(default_factory=list)
    raw_docs: list[LibraryDoc] = Field(default_factory=list)
    access_count: int = 0
    last_accessed_at: datetime | None = None


class SummarizedContextEntry(CacheRecord):
    """AI-compressed context; valid only under its summarization version."""

    fingerprint_prefix: str
    project_signature: str
    frameworks: list[str] = Field(default_factory=list)
    summarization_version: str
    summarized_facts: list[str] = Field(default_factory=list)
    summarized_docs: list[CuratedDoc] = Field(default_factory=list)
    summarized_snippets: list[CodeSnippet] = Field(default_factory=list)
    original_token_count: int = 0
    summarized_token_count: int = 0
    quality_score: float = Field(default=0.0, ge=0.0, le=1.0)


class ContextUsed(BaseModel):
    """Context attached to an enhanced prompt, as reported to the caller."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    repo_facts: list[str] = Field(default_factory=list)
    code_snippets: list[str] = Field(default_factory=list)
    docs: list[str] = Field(default_factory=list)


class ResponseMetrics(BaseModel):
    """Per-run metrics stored with the response entry."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    processing_time_ms: int = 0
    external_call_count: int = 0
    cache_hit: bool = False


class ResponseCacheEntry(CacheRecord):
    """Final enhanced prompt keyed by the full fingerprint (prompt included)."""

    fingerprint: str
    project_signature: str
    original_prompt: str
    enhanced_prompt: str
    context_used: ContextUsed = Field(default_factory=ContextUsed)
    complexity: ComplexityLevel = "medium"
    metrics: ResponseMetrics = Field(default_factory=ResponseMetrics)


class LibraryCacheEntry(CacheRecord):
    """Resolved library id for a framework name."""

    framework: str
    library_id: str
    trust_score: float = 0.0
    description: str = ""


class DocsCacheEntry(CacheRecord):
    """Documentation fetched for one library + topic."""

    library_id: str
    topic: str
    token_budget: int
    content: str


class CacheStats(BaseModel):
    """Hit/miss counters for one cache namespace."""

    namespace: str
    hits: int = 0
    misses: int = 0
    memory_hits: int = 0
    durable_hits: int = 0
    expired: int = 0
    corrupted: int = 0
    evictions: int = 0

    @property
    def total(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Fraction of lookups served from either tier."""
        return self.hits / self.total if self.total else 0.0
