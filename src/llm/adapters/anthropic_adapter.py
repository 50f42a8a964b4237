# src/llm/adapters/anthropic_adapter.py - v4
"""Anthropic Messages API adapter.

JSON output is forced through a single tool whose input schema is the
requested schema; the tool input comes back serialized as the text.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from promptlift.llm.base_client import BaseLLMClient
from promptlift.llm.models import CompletionRequest, CompletionResult, TokenUsage

logger = logging.getLogger(__name__)


class AnthropicAdapter(BaseLLMClient):
    """Adapter for Anthropic Claude models.

    Args:
        model: Claude model id.
        api_key: Anthropic API key.
        timeout_s: SDK request timeout; None keeps the SDK default.
        sdk_client: Pre-built AsyncAnthropic (tests); built lazily otherwise.
    """

    def __init__(
        self,
        model: str = "claude-haiku-4-5-20251001",
        api_key: str = "",
        timeout_s: float | None = None,
        sdk_client: Any = None,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._sdk = sdk_client

    def _client(self) -> Any:
        if self._sdk is None:
            import anthropic

            # retries belong to promptlift.llm.retry
            options: dict[str, Any] = {"api_key": self._api_key, "max_retries": 0}
            if self._timeout_s is not None:
                options["timeout"] = self._timeout_s
            self._sdk = anthropic.AsyncAnthropic(**options)
        return self._sdk

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @property
    def model_name(self) -> str:
        return self._model

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        params: dict[str, Any] = {
            "model": self._model,
            "max_tokens": request.max_output_tokens,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.system:
            params["system"] = request.system
        tool_name = None
        if request.json_schema is not None:
            tool_name = request.schema_name
            params["tools"] = [{
                "name": tool_name,
                "description": "Report the result in exactly this shape.",
                "input_schema": request.json_schema,
            }]
            params["tool_choice"] = {"type": "tool", "name": tool_name}

        start = time.monotonic()
        message = await self._client().messages.create(**params)
        latency_ms = int((time.monotonic() - start) * 1000)

        usage = message.usage
        return CompletionResult(
            text=_message_text(message, tool_name),
            usage=TokenUsage(
                input_tokens=usage.input_tokens,
                output_tokens=usage.output_tokens,
                cache_read_tokens=getattr(usage, "cache_read_input_tokens", 0) or 0,
                cache_write_tokens=getattr(usage, "cache_creation_input_tokens", 0) or 0,
            ),
            model=getattr(message, "model", None) or self._model,
            provider=self.provider_name,
            latency_ms=latency_ms,
            stop_reason=getattr(message, "stop_reason", None),
        )

    async def aclose(self) -> None:
        if self._sdk is not None:
            await self._sdk.close()
            self._sdk = None


def _message_text(message: Any, tool_name: str | None) -> str:
    """Forced tool input as JSON, else the concatenated text blocks."""
    texts: list[str] = []
    for block in message.content:
        kind = getattr(block, "type", None)
        if tool_name is not None and kind == "tool_use":
            return json.dumps(block.input)
        if kind == "text":
            texts.append(block.text)
    if tool_name is not None:
        logger.debug("Forced tool %s not used; falling back to text blocks", tool_name)
    return "".join(texts)
