# src/docs/adapters/context7_adapter.py - v1
"""Context7 documentation adapter over httpx.

Endpoints:
  GET /v1/search?query=<name>                       -> {"results": [...]}
  GET /v1/<library id>?topic=<t>&tokens=<n>&type=txt -> plain text
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from promptlift.core.errors import ExternalServiceError
from promptlift.docs.base_docs_client import BaseDocsClient
from promptlift.docs.models import LibraryMatch

logger = logging.getLogger(__name__)

SERVICE = "context7"


class Context7DocsClient(BaseDocsClient):
    """Async HTTP client for the Context7 REST API."""

    def __init__(
        self,
        base_url: str = "https://context7.com/api",
        api_key: str = "",
        timeout_s: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Accept": "application/json, text/plain"}
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout_s, connect=min(self._timeout_s, 3.0)),
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def provider_name(self) -> str:
        return SERVICE

    async def search_libraries(self, name: str) -> list[LibraryMatch]:
        data = await self._get_json("/v1/search", {"query": name})
        results = data.get("results", []) if isinstance(data, dict) else []
        matches: list[LibraryMatch] = []
        for item in results:
            if not isinstance(item, dict) or not item.get("id"):
                continue
            matches.append(
                LibraryMatch(
                    library_id=str(item["id"]),
                    trust_score=_as_float(item.get("trustScore")),
                    description=str(item.get("description") or item.get("title") or ""),
                )
            )
        logger.debug("Context7 search %r: %d matches", name, len(matches))
        return matches

    async def fetch_docs(self, library_id: str, topic: str, tokens: int) -> str:
        path = "/v1/" + library_id.lstrip("/")
        params = {"topic": topic, "tokens": str(tokens), "type": "txt"}
        try:
            response = await self._get_client().get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                SERVICE, f"GET {path} returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(SERVICE, f"GET {path} failed: {e!r}") from e
        text = response.text.strip()
        if not text:
            raise ExternalServiceError(SERVICE, f"GET {path} returned no documentation")
        return text

    async def _get_json(self, path: str, params: dict[str, str]) -> Any:
        try:
            response = await self._get_client().get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                SERVICE, f"GET {path} returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(SERVICE, f"GET {path} failed: {e!r}") from e
        except ValueError as e:
            raise ExternalServiceError(SERVICE, f"GET {path} returned invalid JSON") from e


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
