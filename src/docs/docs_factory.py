# src/docs/docs_factory.py - v1
"""Factory for the documentation client and resolver."""

from __future__ import annotations

from promptlift.cache.tiered_cache import TieredCache
from promptlift.config.settings import Settings
from promptlift.docs.base_docs_client import BaseDocsClient
from promptlift.docs.resolver import DocumentationResolver


def create_docs_client(settings: Settings | None = None) -> BaseDocsClient:
    """Instantiate the configured documentation provider."""
    settings = settings or Settings()

    if settings.docs_provider == "context7":
        from promptlift.docs.adapters.context7_adapter import Context7DocsClient
        return Context7DocsClient(
            base_url=settings.docs_api_url,
            api_key=settings.docs_api_key,
            timeout_s=settings.docs_timeout_s,
        )

    raise ValueError(f"Unsupported docs provider: {settings.docs_provider!r}")


def create_resolver(
    cache: TieredCache,
    settings: Settings | None = None,
    client: BaseDocsClient | None = None,
) -> DocumentationResolver:
    settings = settings or Settings()
    return DocumentationResolver(
        client or create_docs_client(settings),
        cache,
        docs_ttl_seconds=settings.docs_cache_ttl_seconds,
        library_ttl_seconds=settings.library_cache_ttl_seconds,
        timeout_s=settings.docs_timeout_s,
    )
