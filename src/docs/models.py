# src/docs/models.py - v1
"""Documentation service types: library matches, fetched content, fan-out slots."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LibraryMatch(BaseModel):
    """One candidate returned by a library search."""

    library_id: str
    trust_score: float = 0.0
    description: str = ""


class DocumentContent(BaseModel):
    """Documentation text for one library + topic."""

    library_id: str
    topic: str
    content: str
    token_budget: int = 0
    from_cache: bool = False


class DocSlot(BaseModel):
    """Result-or-error for one framework of a fan-out.

    Exactly one of content / error is set once the slot has resolved;
    content is "" when the framework has no known library.
    external_calls counts the upstream requests this slot actually made.
    """

    framework: str
    library_id: str | None = None
    content: str | None = None
    error: str | None = None
    external_calls: int = Field(default=0, ge=0)

    @property
    def ok(self) -> bool:
        return self.error is None and self.content is not None
