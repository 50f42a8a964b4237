# src/llm/client_factory.py - v4
"""Factory: LLM client for a provider name.

Adapters are imported lazily, so a provider SDK is only loaded when that
provider is configured.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass

from promptlift.config.settings import Settings
from promptlift.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderInfo:
    """Where a provider's adapter lives and which setting holds its key."""

    adapter_path: str
    api_key_field: str | None = None


PROVIDERS: dict[str, ProviderInfo] = {
    "anthropic": ProviderInfo(
        "promptlift.llm.adapters.anthropic_adapter.AnthropicAdapter", "anthropic_api_key"
    ),
    "openai": ProviderInfo(
        "promptlift.llm.adapters.openai_adapter.OpenAIAdapter", "openai_api_key"
    ),
}


class UnsupportedProviderError(ValueError):
    """Raised for a provider name missing from PROVIDERS."""


def provider_info(provider: str) -> ProviderInfo:
    try:
        return PROVIDERS[provider]
    except KeyError:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(PROVIDERS))}"
        ) from None


def api_key_for(provider: str, settings: Settings) -> str:
    """Configured API key of a provider ("" when it needs none or has none)."""
    field = provider_info(provider).api_key_field
    return str(getattr(settings, field, "") or "") if field else ""


def create_llm_client(
    provider: str,
    model: str,
    settings: Settings | None = None,
    **kwargs: object,
) -> BaseLLMClient:
    """Instantiate the adapter of a provider.

    Args:
        provider: Provider identifier (anthropic, openai).
        model: Model id (e.g. claude-haiku-4-5-20251001).
        settings: Source of the API key unless api_key is passed explicitly.
        **kwargs: Extra adapter arguments (timeout_s, sdk_client, ...).

    Raises:
        UnsupportedProviderError: Unknown provider.
    """
    info = provider_info(provider)
    module_path, class_name = info.adapter_path.rsplit(".", 1)
    adapter_cls = getattr(importlib.import_module(module_path), class_name)

    options = dict(kwargs)
    options["model"] = model
    if settings is not None and info.api_key_field:
        options.setdefault("api_key", api_key_for(provider, settings))

    logger.debug("Creating LLM client: provider=%s, model=%s", provider, model)
    return adapter_cls(**options)
