# src/docs/base_docs_client.py - v1
"""Abstract documentation service client.

Implementations translate transport failures into ExternalServiceError;
callers never see httpx or SDK exceptions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from promptlift.docs.models import LibraryMatch


class BaseDocsClient(ABC):
    """Unified interface for documentation providers."""

    @abstractmethod
    async def search_libraries(self, name: str) -> list[LibraryMatch]:
        """Libraries matching a framework name, in provider order."""

    @abstractmethod
    async def fetch_docs(self, library_id: str, topic: str, tokens: int) -> str:
        """Documentation text for a library, focused on topic, within tokens."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (context7)."""

    async def aclose(self) -> None:
        """Release transport resources. Default: nothing to release."""
        return None
