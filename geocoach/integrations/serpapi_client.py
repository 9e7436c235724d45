"""SerpAPI (Google engine) client: AI overviews, answer boxes, and search metadata."""

import logging
from typing import Any, Optional

import httpx

from geocoach.config import SerpApiConfig
from geocoach.errors import ConfigError, UpstreamError
from geocoach.modules.visibility.fanout import fan_out

logger = logging.getLogger(__name__)

AI_OVERVIEW_ENGINE = "google_ai_overview"

# Continuation fields that must never reach a caller.
_CONTINUATION_KEYS = ("page_token", "serpapi_link")


class SerpApiClient:
    """Client for the SerpAPI Google search endpoint.

    A search is a two-phase fetch: the first response may carry an AI
    overview that is only a ``page_token``; the client resolves it with a
    second request before returning, so callers only ever see a complete
    overview or ``None``.

    Usage::

        serp = SerpApiClient(config.serpapi)
        result = await serp.search_one("who is dr smith")
        results = await serp.search_all(queries)   # {0: {...}, 1: {...}}
    """

    def __init__(
        self,
        config: Optional[SerpApiConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        config = config or SerpApiConfig()
        self._api_key = config.api_key
        self._base_url = config.base_url
        self._engine = config.engine
        self._country = config.country
        self._language = config.language
        self._timeout = config.timeout
        self._page_token_timeout = config.page_token_timeout
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout,
            transport=self._transport,
            headers={"Accept": "application/json"},
        )

    def _require_key(self) -> None:
        if not self._api_key:
            raise ConfigError("SerpAPI key not configured")

    async def search_one(self, query: str) -> dict[str, Any]:
        """Search Google through SerpAPI and normalise the answer panels.

        Returns:
            Dict with ``ai_overview`` (or None), ``answer_box`` (or None),
            and ``search_metadata`` (total_results, time_taken, query).

        Raises:
            ConfigError: No API key, checked before any network call.
            UpstreamError: Non-2xx response or transport failure.
        """
        self._require_key()
        params = {
            "q": query,
            "api_key": self._api_key,
            "engine": self._engine,
            "gl": self._country,
            "hl": self._language,
        }

        async with self._client(self._timeout) as client:
            try:
                response = await client.get(self._base_url, params=params)
            except httpx.HTTPError as exc:
                logger.error("SerpAPI request for %r failed: %s", query, exc)
                raise UpstreamError(f"SerpAPI request failed: {exc}") from exc

            if not response.is_success:
                raise UpstreamError(
                    f"SerpAPI request failed: {response.status_code} {response.reason_phrase}",
                    status_code=response.status_code,
                    reason=response.reason_phrase,
                )
            try:
                data = response.json()
            except ValueError as exc:
                raise UpstreamError("SerpAPI returned invalid JSON") from exc

            if not isinstance(data, dict):
                raise UpstreamError("SerpAPI returned an unexpected payload")

            ai_overview = data.get("ai_overview") or None
            answer_box = data.get("answer_box") or None
            logger.debug(
                "SerpAPI %r: ai_overview=%s answer_box=%s page_token=%s",
                query, ai_overview is not None, answer_box is not None,
                isinstance(ai_overview, dict) and bool(ai_overview.get("page_token")),
            )

            if isinstance(ai_overview, dict) and ai_overview.get("page_token"):
                ai_overview = await self._resolve_ai_overview(client, ai_overview)

        search_information = data.get("search_information") or {}
        search_parameters = data.get("search_parameters") or {}
        return {
            "ai_overview": ai_overview,
            "answer_box": answer_box,
            "search_metadata": {
                "total_results": search_information.get("total_results"),
                "time_taken": search_information.get("time_taken_displayed"),
                "query": search_parameters.get("q", query),
            },
        }

    async def search_all(self, queries: list[str]) -> dict[int, dict[str, Any]]:
        """Run :meth:`search_one` for every query concurrently.

        Returns:
            ``{index: result}`` for every index in ``range(len(queries))``;
            a failed query holds ``{"error": reason}``.
        """
        return await fan_out(queries, self.search_one)

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    def _page_token_request(self, overview: dict[str, Any]) -> tuple[str, dict[str, str]]:
        """Return the URL and params that resolve *overview*'s page token."""
        link = overview.get("serpapi_link")
        if link:
            return link, {"api_key": self._api_key}
        return self._base_url, {
            "engine": AI_OVERVIEW_ENGINE,
            "page_token": overview["page_token"],
            "api_key": self._api_key,
        }

    async def _resolve_ai_overview(
        self,
        client: httpx.AsyncClient,
        overview: dict[str, Any],
    ) -> Optional[dict[str, Any]]:
        """Fetch the full overview behind a page token.

        Any failure (non-2xx, timeout, transport error, invalid JSON, an
        ``error`` in the payload, or no overview at all) drops the overview
        rather than returning the dangling token.
        """
        url, params = self._page_token_request(overview)
        try:
            response = await client.get(url, params=params, timeout=self._page_token_timeout)
        except httpx.TimeoutException:
            logger.error(
                "AI Overview page token fetch timed out after %.0f seconds",
                self._page_token_timeout,
            )
            return None
        except httpx.HTTPError as exc:
            logger.error("Error fetching AI Overview with page token: %s", exc)
            return None

        if not response.is_success:
            logger.error("Failed to fetch AI Overview with page token: %s", response.status_code)
            return None
        try:
            payload = response.json()
        except ValueError:
            logger.error("AI Overview page token response is not JSON")
            return None

        if not isinstance(payload, dict):
            logger.error("AI Overview page token response is not an object")
            return None
        if payload.get("error"):
            logger.error("Error in AI Overview page token response: %s", payload["error"])
            return None
        resolved = payload.get("ai_overview")
        if not resolved:
            logger.info("No ai_overview in page token response, dropping overview")
            return None
        if not isinstance(resolved, dict):
            logger.error("Unexpected ai_overview shape in page token response: %s", type(resolved).__name__)
            return None

        resolved = {k: v for k, v in resolved.items() if k not in _CONTINUATION_KEYS}
        logger.info("AI Overview content resolved from page token")
        return resolved
