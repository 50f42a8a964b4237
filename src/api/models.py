# src/api/models.py - v2
"""Request/response contract of the enhancement API.

Field names are accepted in snake_case or camelCase; to_payload() emits
camelCase (enhancedPrompt, contextUsed, processingTimeMs, ...).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from promptlift.cache.models import ContextUsed, ResponseMetrics
from promptlift.core.models import RequestContext, RequestOptions

# Public names for the request sub-records.
EnhanceContext = RequestContext
EnhanceOptions = RequestOptions


class EnhanceRequest(BaseModel):
    """Enhancement request."""

    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True
    )

    prompt: str = Field(min_length=1)
    context: EnhanceContext | None = None
    options: EnhanceOptions = Field(default_factory=EnhanceOptions)


class EnhanceResponse(BaseModel):
    """Enhancement response."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    enhanced_prompt: str = ""
    context_used: ContextUsed = Field(default_factory=ContextUsed)
    metrics: ResponseMetrics = Field(default_factory=ResponseMetrics)
    success: bool
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """camelCase dict; error omitted on success."""
        return self.model_dump(by_alias=True, exclude_none=True)
