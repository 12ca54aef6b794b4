"""Abstract base class for web-search service providers.

Used by the research stage to discover pages about an artist.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class SearchResult:
    """A single web-search result.

    Attributes
    ----------
    title:
        The page title as returned by the search engine.
    url:
        The result URL.
    snippet:
        Optional text excerpt from the result.
    """

    title: str
    url: str
    snippet: str | None = None


# Concrete implementation: DuckDuckGoSearchProvider (technodog/providers/search/)
class IWebSearchProvider(ABC):
    """Contract for web-search services."""

    @abstractmethod
    async def search(self, query: str, num_results: int = 10) -> list[SearchResult]:
        """Execute a web search and return the top results.

        Parameters
        ----------
        query:
            The search query string.
        num_results:
            Maximum number of results to return.

        Raises
        ------
        technodog.utils.errors.ResearchError
            If the search backend fails.
        technodog.utils.errors.RateLimitError
            If the backend is rate limiting us.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
