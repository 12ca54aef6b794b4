"""Abstract base classes for content providers.

:class:`IArticleProvider` extracts readable text from arbitrary web pages
(research stage).  :class:`IEncyclopediaProvider` looks up a reference
article by free-text query (knowledge ingestion).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from technodog.models.knowledge import WikipediaArticle


@dataclass(frozen=True)
class ArticleContent:
    """Extracted content from a web page.

    Attributes
    ----------
    title:
        The page title.
    text:
        Main body text with markup stripped.
    url:
        The URL the content was extracted from.
    markdown:
        Optional markdown rendition of the body.
    """

    title: str
    text: str
    url: str = ""
    markdown: str | None = None


class IArticleProvider(ABC):
    """Contract for services that extract readable content from URLs."""

    @abstractmethod
    async def extract_content(self, url: str) -> ArticleContent | None:
        """Fetch and extract readable content from *url*.

        Returns ``None`` when the page has no extractable body.

        Raises
        ------
        technodog.utils.errors.ResearchError
            On HTTP failures.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""


class IEncyclopediaProvider(ABC):
    """Contract for reference-article lookups (Wikipedia)."""

    @abstractmethod
    async def fetch_article(self, query: str) -> WikipediaArticle | None:
        """Return the best-matching article for *query*, or ``None``.

        Implementations return ``None`` on no hit and on transport failure.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
