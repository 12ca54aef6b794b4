"""DuckDuckGo web-search provider implementing IWebSearchProvider.

Uses the duckduckgo_search library for keyless web searches.  The
synchronous ``DDGS`` client is wrapped in ``asyncio.to_thread``.  Rate
limits surface as :class:`RateLimitError` so the research stage's pacer can
retry them; other backend failures become :class:`ResearchError`.
"""

from __future__ import annotations

import asyncio

import structlog
from duckduckgo_search import DDGS
from duckduckgo_search.exceptions import DuckDuckGoSearchException, RatelimitException

from technodog.interfaces.web_search_provider import IWebSearchProvider, SearchResult
from technodog.utils.errors import RateLimitError, ResearchError

logger = structlog.get_logger(logger_name=__name__)


class DuckDuckGoSearchProvider(IWebSearchProvider):
    """DuckDuckGo web-search provider.  No API key required."""

    def __init__(self) -> None:
        logger.info("duckduckgo_provider_initialized")

    async def search(self, query: str, num_results: int = 10) -> list[SearchResult]:
        """Execute a DuckDuckGo web search and return results."""
        try:
            raw_results = await asyncio.to_thread(self._sync_search, query, num_results)
        except RatelimitException as exc:
            raise RateLimitError(
                message=f"DuckDuckGo rate limit for {query!r}",
                provider_name=self.get_provider_name(),
            ) from exc
        except DuckDuckGoSearchException as exc:
            raise ResearchError(
                message=f"DuckDuckGo search failed for {query!r}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        results: list[SearchResult] = []
        for item in raw_results or []:
            url = item.get("href", item.get("url", ""))
            if not url:
                continue
            results.append(
                SearchResult(
                    title=item.get("title", ""),
                    url=url,
                    snippet=item.get("body"),
                )
            )

        logger.debug("duckduckgo_search_complete", query=query, result_count=len(results))
        return results

    @staticmethod
    def _sync_search(query: str, max_results: int) -> list[dict]:
        """Run the synchronous DDGS search (called via to_thread)."""
        with DDGS() as ddgs:
            return list(ddgs.text(query, max_results=max_results))

    def get_provider_name(self) -> str:
        return "duckduckgo"
