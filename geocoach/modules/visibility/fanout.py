"""Fan-out of search queries and the index-keyed result state built from it."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

from geocoach.errors import GeoCoachError

logger = logging.getLogger(__name__)

SearchFn = Callable[[str], Awaitable[dict[str, Any]]]


async def fan_out(queries: list[str], search: SearchFn) -> dict[int, dict[str, Any]]:
    """Run *search* for every query concurrently and key the results by index.

    One query failing never cancels or delays the others; its slot holds
    ``{"error": reason}`` instead.  The mapping is built only after every
    call has settled and always has exactly the keys ``0..len(queries)-1``.
    """
    tasks = [asyncio.create_task(search(query)) for query in queries]
    results_raw = await asyncio.gather(*tasks, return_exceptions=True)

    results: dict[int, dict[str, Any]] = {}
    for index, (query, res) in enumerate(zip(queries, results_raw)):
        if isinstance(res, BaseException):
            if isinstance(res, GeoCoachError):
                logger.warning("Query %d (%r) failed: %s", index, query, res)
            else:
                logger.error("Query %d (%r) failed: %s", index, query, res, exc_info=res)
            results[index] = {"error": str(res) or type(res).__name__}
        else:
            results[index] = res
    return results


class SearchAdapter(Protocol):
    """What a visibility provider must offer to be driven by a session."""

    async def search_one(self, query: str) -> dict[str, Any]: ...

    async def search_all(self, queries: list[str]) -> dict[int, dict[str, Any]]: ...


class QueryGeneratorLike(Protocol):
    async def generate(self, subject: str) -> list[str]: ...


class VisibilitySession:
    """State behind one visibility tool: the queries, their results, one error.

    ``results`` maps query index to that query's settled result.  Searching
    one query updates only its own slot; searching all clears the mapping
    and swaps in the complete new set once every query has settled, so a
    half-old, half-new mapping is never observable.  ``error`` holds a
    single message: the last failure wins.
    """

    def __init__(
        self,
        adapter: SearchAdapter,
        generator: Optional[QueryGeneratorLike] = None,
    ) -> None:
        self.adapter = adapter
        self.generator = generator
        self.subject: str = ""
        self.queries: list[str] = []
        self.results: dict[int, dict[str, Any]] = {}
        self.error: Optional[str] = None
        self.loading = False

    def dismiss_error(self) -> None:
        self.error = None

    async def generate_queries(self, subject: str) -> list[str]:
        """Replace the query list with freshly generated queries for *subject*."""
        if self.generator is None:
            raise RuntimeError("No query generator attached to this session.")
        self.error = None
        try:
            queries = await self.generator.generate(subject)
        except Exception as exc:
            self.error = str(exc) or "Failed to generate queries"
            logger.warning("Query generation for %r failed: %s", subject, exc)
            return self.queries
        self.subject = subject
        self.queries = list(queries)
        return self.queries

    async def search_one(self, index: int) -> Optional[dict[str, Any]]:
        """Search the query at *index* and store its result in that slot only."""
        query = self.queries[index]
        self.loading = True
        self.error = None
        try:
            result = await self.adapter.search_one(query)
        except Exception as exc:
            self.error = str(exc) or "Failed to search"
            logger.warning("Search for query %d (%r) failed: %s", index, query, exc)
            return None
        finally:
            self.loading = False
        self.results = {**self.results, index: result}
        return result

    async def search_all(self) -> dict[int, dict[str, Any]]:
        """Search every query and replace the result mapping wholesale."""
        if not self.queries:
            return self.results
        self.loading = True
        self.error = None
        self.results = {}
        try:
            new_results = await self.adapter.search_all(self.queries)
        except Exception as exc:
            self.error = str(exc) or "Failed to search"
            logger.warning("Search-all for %d queries failed: %s", len(self.queries), exc)
            return self.results
        finally:
            self.loading = False
        self.results = dict(sorted(new_results.items()))
        return self.results
