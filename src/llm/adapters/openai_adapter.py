# src/llm/adapters/openai_adapter.py - v3
"""OpenAI Chat Completions adapter."""

from __future__ import annotations

import time
from typing import Any

from promptlift.llm.base_client import BaseLLMClient
from promptlift.llm.models import CompletionRequest, CompletionResult, TokenUsage


class OpenAIAdapter(BaseLLMClient):
    """Adapter for OpenAI GPT models.

    JSON output uses response_format=json_schema. Cached prompt tokens are
    reported separately from the uncached remainder.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
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
            import openai

            options: dict[str, Any] = {"api_key": self._api_key, "max_retries": 0}
            if self._timeout_s is not None:
                options["timeout"] = self._timeout_s
            self._sdk = openai.AsyncOpenAI(**options)
        return self._sdk

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        messages: list[dict[str, str]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.append({"role": "user", "content": request.prompt})

        params: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "max_completion_tokens": request.max_output_tokens,
            "temperature": request.temperature,
        }
        if request.json_schema is not None:
            params["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": request.schema_name, "schema": request.json_schema},
            }

        start = time.monotonic()
        completion = await self._client().chat.completions.create(**params)
        latency_ms = int((time.monotonic() - start) * 1000)

        choice = completion.choices[0]
        return CompletionResult(
            text=choice.message.content or "",
            usage=_usage(completion.usage),
            model=getattr(completion, "model", None) or self._model,
            provider=self.provider_name,
            latency_ms=latency_ms,
            stop_reason=getattr(choice, "finish_reason", None),
        )

    async def aclose(self) -> None:
        if self._sdk is not None:
            await self._sdk.close()
            self._sdk = None


def _usage(usage: Any) -> TokenUsage:
    if usage is None:
        return TokenUsage()
    details = getattr(usage, "prompt_tokens_details", None)
    cached = getattr(details, "cached_tokens", 0) or 0
    return TokenUsage(
        input_tokens=max(0, usage.prompt_tokens - cached),
        output_tokens=usage.completion_tokens,
        cache_read_tokens=cached,
    )
