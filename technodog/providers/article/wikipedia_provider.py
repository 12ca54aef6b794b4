"""Wikipedia article provider using the MediaWiki action API over httpx.

Two requests per lookup: ``list=search`` to find the best-matching page
title, then ``prop=extracts&explaintext=1`` for its plain-text body.
"""

from __future__ import annotations

from urllib.parse import quote

import httpx
import structlog

from technodog.interfaces.article_provider import IEncyclopediaProvider
from technodog.models.knowledge import WikipediaArticle

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_API_URL = "https://en.wikipedia.org/w/api.php"
_ARTICLE_BASE_URL = "https://en.wikipedia.org/wiki/"
_DEFAULT_TIMEOUT = 20.0
_DEFAULT_HEADERS = {
    "User-Agent": "technodog-knowledge/0.1 (https://techno.dog)",
}

# Characters encodeURIComponent leaves alone; keeps "Tresor_(club)" readable.
_URL_SAFE = "!'()*-._~"


def article_url(title: str) -> str:
    """Return the canonical article URL for a page *title*."""
    return _ARTICLE_BASE_URL + quote(title.replace(" ", "_"), safe=_URL_SAFE)


class WikipediaProvider(IEncyclopediaProvider):
    """Looks up English Wikipedia articles by free-text query.

    Parameters
    ----------
    api_url:
        MediaWiki ``api.php`` endpoint.
    http_client:
        Optional shared client (tests inject one backed by
        ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_url: str = _DEFAULT_API_URL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_url = api_url
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(_DEFAULT_TIMEOUT),
            headers=_DEFAULT_HEADERS,
            follow_redirects=True,
        )

    async def fetch_article(self, query: str) -> WikipediaArticle | None:
        """Return the plain-text extract of the top search hit for *query*.

        ``None`` when the search has no hits, the page has no extract, or
        any request fails.
        """
        try:
            search = await self._get(
                {"action": "query", "list": "search", "srsearch": query, "format": "json"}
            )
            hits = (search.get("query") or {}).get("search") or []
            if not hits:
                logger.info("wikipedia_no_results", query=query)
                return None
            page_title = hits[0]["title"]

            content = await self._get(
                {
                    "action": "query",
                    "titles": page_title,
                    "prop": "extracts",
                    "explaintext": "1",
                    "format": "json",
                }
            )
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            logger.warning("wikipedia_fetch_failed", query=query, error=str(exc))
            return None

        pages = (content.get("query") or {}).get("pages") or {}
        page = next(iter(pages.values()), None) if isinstance(pages, dict) else None
        if not page or not page.get("extract"):
            logger.info("wikipedia_empty_extract", query=query, title=page_title)
            return None

        logger.info(
            "wikipedia_article_fetched",
            query=query,
            title=page.get("title") or page_title,
            length=len(page["extract"]),
        )
        return WikipediaArticle(
            title=page.get("title") or page_title,
            content=page["extract"],
            url=article_url(page_title),
        )

    async def _get(self, params: dict[str, str]) -> dict:
        response = await self._client.get(self._api_url, params=params)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("Unexpected MediaWiki response shape")
        return data

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def get_provider_name(self) -> str:
        return "wikipedia"
