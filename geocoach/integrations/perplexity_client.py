"""Perplexity chat-completions client for LLM-search visibility checks."""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from geocoach.config import PerplexityConfig
from geocoach.errors import ConfigError, UpstreamError
from geocoach.modules.visibility.fanout import fan_out

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful assistant that provides accurate, up-to-date information "
    "about local businesses and services. Focus on providing factual, "
    "location-specific information when available."
)
NO_ANSWER = "No response received"


def normalize_citations(data: dict[str, Any]) -> list[dict[str, Any]]:
    """Map Perplexity's citation shapes onto ``{text, url, title?}`` entries.

    ``citations`` may be bare URL strings or objects; titles are filled in
    from ``search_results`` when the API provides them.
    """
    titles = {
        item.get("url"): item.get("title")
        for item in data.get("search_results") or []
        if isinstance(item, dict) and item.get("url")
    }
    citations: list[dict[str, Any]] = []
    for item in data.get("citations") or []:
        if isinstance(item, str):
            entry: dict[str, Any] = {"text": item, "url": item}
            if titles.get(item):
                entry["title"] = titles[item]
        elif isinstance(item, dict):
            url = item.get("url") or item.get("link") or ""
            entry = {
                "text": item.get("text") or item.get("snippet") or item.get("title") or url,
                "url": url,
            }
            title = item.get("title") or titles.get(url)
            if title:
                entry["title"] = title
        else:
            continue
        citations.append(entry)
    return citations


class PerplexityClient:
    """Client for Perplexity's online models.

    Usage::

        pplx = PerplexityClient(config.perplexity)
        answer = await pplx.search_one("what area does dr smith serve")
        answers = await pplx.search_many(queries)   # one entry per query
    """

    def __init__(
        self,
        config: Optional[PerplexityConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        config = config or PerplexityConfig()
        self._api_key = config.api_key
        self._base_url = config.base_url
        self._model = config.model
        self._max_tokens = config.max_tokens
        self._temperature = config.temperature
        self._top_p = config.top_p
        self._recency_filter = config.recency_filter
        self._domain_filter = list(config.domain_filter)
        self._timeout = config.timeout
        self._transport = transport

    def _require_key(self) -> None:
        if not self._api_key:
            raise ConfigError("Perplexity API key not configured")

    def _payload(self, query: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": query},
            ],
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            "top_p": self._top_p,
            "return_citations": True,
            "search_recency_filter": self._recency_filter,
        }
        if self._domain_filter:
            payload["search_domain_filter"] = self._domain_filter
        return payload

    async def _ask(self, client: httpx.AsyncClient, query: str) -> dict[str, Any]:
        """POST one query and map the chat completion to a search result."""
        try:
            response = await client.post(self._base_url, json=self._payload(query))
        except httpx.HTTPError as exc:
            logger.error("Perplexity request for %r failed: %s", query, exc)
            raise UpstreamError(f"Perplexity API request failed: {exc}") from exc

        if not response.is_success:
            raise UpstreamError(
                f"Perplexity API request failed: {response.status_code} "
                f"{response.reason_phrase} - {response.text[:500]}",
                status_code=response.status_code,
                reason=response.reason_phrase,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError("Perplexity API returned invalid JSON") from exc

        choices = data.get("choices") or []
        answer = ""
        if choices:
            answer = ((choices[0] or {}).get("message") or {}).get("content") or ""

        return {
            "query": query,
            "answer": answer or NO_ANSWER,
            "citations": normalize_citations(data),
            "model": data.get("model", self._model),
            "usage": data.get("usage"),
            "search_metadata": {
                "query": query,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
        )

    async def search_one(self, query: str) -> dict[str, Any]:
        """Ask a single query.

        Raises:
            ConfigError: No API key, checked before any network call.
            UpstreamError: Non-2xx response or transport failure.
        """
        self._require_key()
        async with self._client() as client:
            return await self._ask(client, query)

    async def search_many(self, queries: list[str]) -> list[dict[str, Any]]:
        """Ask every query concurrently over one connection pool.

        Failures are isolated: the returned list always has one entry per
        query, in query order, and a failed entry is
        ``{"query": ..., "error": ...}``.

        Raises:
            ConfigError: No API key, checked once before dispatch.
        """
        self._require_key()
        async with self._client() as client:
            keyed = await fan_out(queries, lambda q: self._ask(client, q))

        results = []
        for index, query in enumerate(queries):
            result = keyed[index]
            if "error" in result:
                result = {"query": query, "error": result["error"]}
            results.append(result)
        logger.info(
            "Perplexity batch: %d queries, %d failed",
            len(queries), sum(1 for r in results if "error" in r),
        )
        return results

    async def search_all(self, queries: list[str]) -> dict[int, dict[str, Any]]:
        """Index-keyed form of :meth:`search_many`."""
        return dict(enumerate(await self.search_many(queries)))
