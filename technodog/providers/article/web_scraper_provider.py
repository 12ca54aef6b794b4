"""Web scraper article provider using httpx and trafilatura.

Fetches HTML with httpx and extracts the main content with trafilatura,
once as plain text (stored as ``content_text``) and once as markdown
(``content_markdown``) for the raw document archive.
"""

from __future__ import annotations

import json

import httpx
import structlog
import trafilatura

from technodog.interfaces.article_provider import ArticleContent, IArticleProvider
from technodog.utils.errors import RateLimitError, ResearchError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_TIMEOUT = 15.0
_DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; technodog-knowledge/0.1; +https://techno.dog)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


class WebScraperProvider(IArticleProvider):
    """Article extraction backed by httpx + trafilatura."""

    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(_DEFAULT_TIMEOUT),
            headers=_DEFAULT_HEADERS,
            follow_redirects=True,
        )

    async def extract_content(self, url: str) -> ArticleContent | None:
        """Fetch *url* and extract readable article text via trafilatura."""
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ResearchError(
                message=f"Timeout fetching {url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 429:
                raise RateLimitError(
                    message=f"HTTP 429 for {url}",
                    provider_name=self.get_provider_name(),
                ) from exc
            raise ResearchError(
                message=f"HTTP {exc.response.status_code} for {url}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise ResearchError(
                message=f"HTTP error fetching {url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        html = response.text
        text = trafilatura.extract(html, include_comments=False, include_tables=True)
        if not text:
            logger.warning("trafilatura_extraction_empty", url=url)
            return None

        markdown = trafilatura.extract(
            html,
            include_comments=False,
            include_tables=True,
            output_format="markdown",
        )

        title = ""
        metadata = trafilatura.extract(
            html,
            include_comments=False,
            output_format="json",
            with_metadata=True,
        )
        if metadata:
            try:
                title = json.loads(metadata).get("title") or ""
            except json.JSONDecodeError:
                logger.debug("metadata_parse_failed", url=url)

        logger.info("article_extracted", url=url, title=title, text_length=len(text))
        return ArticleContent(title=title, text=text, url=url, markdown=markdown)

    async def aclose(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._owns_client:
            await self._client.aclose()

    def get_provider_name(self) -> str:
        return "web_scraper"
