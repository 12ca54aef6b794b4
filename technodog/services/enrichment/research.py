"""Research stage: discover and scrape web pages about an artist.

Search queries are generated from the artist's name (plus one alias) and
the requested research objectives, executed against the web-search
provider, filtered through the source-domain registry, and the best pages
are scraped into ``artist_raw_documents``.

All outbound requests go through one :class:`RequestPacer` so the stage
never exceeds its configured request rate; rate-limit responses are
retried with linear backoff before they count as an error.
"""

from __future__ import annotations

import hashlib
from urllib.parse import urlparse
from uuid import uuid4

import structlog
from cachetools import TTLCache

from technodog.interfaces.article_provider import IArticleProvider
from technodog.interfaces.enrichment_store import IEnrichmentStore
from technodog.interfaces.web_search_provider import IWebSearchProvider
from technodog.models.enrichment import (
    DiscoveredSource,
    RawDocument,
    ResearchStageResult,
    ScrapeOutcome,
    SourceDomain,
)
from technodog.utils.concurrency import RequestPacer
from technodog.utils.errors import TechnoDogError

logger = structlog.get_logger(logger_name=__name__)

# First keyword per objective is used; unknown objectives search for themselves.
OBJECTIVE_KEYWORDS: dict[str, str] = {
    "bio": "biography",
    "discography": "discography",
    "collaborators": "collaboration",
    "events": "tour",
    "press": "review",
    "labels": "record label",
}

DEFAULT_OBJECTIVES: tuple[str, ...] = ("bio", "discography")

_MAX_QUERIES = 10
_QUERIES_EXECUTED = 5
_RESULTS_PER_QUERY = 5
_MAX_SCRAPE_URLS = 5


def generate_search_queries(
    artist_name: str,
    aliases: list[str] | None = None,
    objectives: list[str] | None = None,
) -> list[str]:
    """Build up to ten search queries for the artist and one alias."""
    objectives = list(objectives) if objectives is not None else list(DEFAULT_OBJECTIVES)
    names = [n for n in [artist_name, *(aliases or [])] if n][:2]
    queries: list[str] = []
    for name in names:
        queries.append(f'"{name}" techno DJ producer')
        for objective in objectives:
            queries.append(f'"{name}" {OBJECTIVE_KEYWORDS.get(objective, objective)}')
    return queries[:_MAX_QUERIES]


def extract_domain(url: str) -> str:
    """Return the hostname of *url* without a leading ``www.`` ("" if unparsable)."""
    try:
        hostname = urlparse(url).hostname or ""
    except ValueError:
        return ""
    return hostname[4:] if hostname.startswith("www.") else hostname


def content_hash(content: str, url: str) -> str:
    """Deduplication key for a scraped page: sha256 of content + url, 32 hex chars."""
    return hashlib.sha256((content + url).encode("utf-8")).hexdigest()[:32]


class ResearchService:
    """Discovers, ranks and scrapes sources for one artist at a time.

    Parameters
    ----------
    store:
        Enrichment persistence (domain registry and raw documents).
    search:
        Web-search provider.
    scraper:
        Article extraction provider.
    pacer:
        Shared request pacer for search and scrape calls.
    domain_cache_ttl:
        Seconds a domain-registry lookup is memoised.
    """

    def __init__(
        self,
        store: IEnrichmentStore,
        search: IWebSearchProvider,
        scraper: IArticleProvider,
        pacer: RequestPacer | None = None,
        domain_cache_ttl: int = 300,
    ) -> None:
        self._store = store
        self._search = search
        self._scraper = scraper
        self._pacer = pacer or RequestPacer()
        self._domain_cache: TTLCache[str, SourceDomain] = TTLCache(
            maxsize=1024, ttl=domain_cache_ttl
        )

    # ------------------------------------------------------------------
    # Domain registry
    # ------------------------------------------------------------------

    async def domain_info(self, domain: str) -> SourceDomain:
        """Return registry metadata, defaulting unknown domains to quality 0.5."""
        cached = self._domain_cache.get(domain)
        if cached is not None:
            return cached
        info = await self._store.get_domain(domain) if domain else None
        if info is None:
            info = SourceDomain(domain=domain)
        self._domain_cache[domain] = info
        return info

    # ------------------------------------------------------------------
    # Search / discover
    # ------------------------------------------------------------------

    async def search(self, query: str, limit: int = 10) -> list[DiscoveredSource]:
        """Run one search and annotate hits with domain quality.

        Raises
        ------
        technodog.utils.errors.TechnoDogError
            If the search provider fails after retries.
        """
        results = await self._pacer.call(lambda: self._search.search(query, limit))
        discovered: list[DiscoveredSource] = []
        for hit in results:
            domain = extract_domain(hit.url)
            info = await self.domain_info(domain)
            if info.is_blocked:
                logger.debug("blocked_domain_skipped", domain=domain, url=hit.url)
                continue
            discovered.append(
                DiscoveredSource(
                    url=hit.url,
                    title=hit.title,
                    snippet=hit.snippet,
                    domain=domain,
                    quality_score=info.quality_score,
                    is_primary_source=info.is_primary_source,
                    query=query,
                )
            )
        return discovered

    async def discover(
        self,
        artist_name: str,
        aliases: list[str] | None = None,
        objectives: list[str] | None = None,
    ) -> list[DiscoveredSource]:
        """Return de-duplicated candidate URLs, best quality first."""
        sources, _ = await self._discover(artist_name, aliases, objectives)
        return sources

    async def _discover(
        self,
        artist_name: str,
        aliases: list[str] | None,
        objectives: list[str] | None,
    ) -> tuple[list[DiscoveredSource], list[str]]:
        queries = generate_search_queries(artist_name, aliases, objectives)[:_QUERIES_EXECUTED]
        by_url: dict[str, DiscoveredSource] = {}
        errors: list[str] = []
        for query in queries:
            try:
                hits = await self.search(query, _RESULTS_PER_QUERY)
            except TechnoDogError as exc:
                logger.warning("research_search_failed", query=query, error=str(exc))
                errors.append(f"Search error: {exc.message}")
                continue
            for hit in hits:
                by_url.setdefault(hit.url, hit)
        ranked = sorted(by_url.values(), key=lambda s: s.quality_score, reverse=True)
        logger.info(
            "research_discovery_complete",
            artist=artist_name,
            queries=len(queries),
            sources=len(ranked),
        )
        return ranked, errors

    # ------------------------------------------------------------------
    # Scrape
    # ------------------------------------------------------------------

    async def scrape(self, urls: list[str], artist_id: str) -> list[ScrapeOutcome]:
        """Scrape up to five URLs for *artist_id*, skipping blocked domains."""
        outcomes: list[ScrapeOutcome] = []
        for url in urls[:_MAX_SCRAPE_URLS]:
            if (await self.domain_info(extract_domain(url))).is_blocked:
                logger.info("blocked_domain_skipped", url=url)
                continue
            try:
                outcomes.append(await self._scrape_one(url, artist_id))
            except TechnoDogError as exc:
                outcomes.append(ScrapeOutcome(url=url, success=False, error=exc.message))
        return outcomes

    async def _scrape_one(self, url: str, artist_id: str) -> ScrapeOutcome:
        article = await self._pacer.call(lambda: self._scraper.extract_content(url))
        if article is None or not article.text:
            return ScrapeOutcome(url=url, success=False, error="No extractable content")

        digest = content_hash(article.text, url)
        existing = await self._store.find_raw_document(url, digest)
        if existing is not None:
            logger.debug("raw_document_exists", url=url, raw_doc_id=existing)
            return ScrapeOutcome(
                url=url,
                success=True,
                raw_doc_id=existing,
                content_length=len(article.text),
                duplicate=True,
            )

        document = RawDocument(
            raw_doc_id=str(uuid4()),
            artist_id=artist_id,
            url=url,
            domain=extract_domain(url),
            content_text=article.text,
            content_markdown=article.markdown,
            content_hash=digest,
        )
        await self._store.insert_raw_document(document)
        logger.info("raw_document_stored", url=url, length=len(article.text))
        return ScrapeOutcome(
            url=url,
            success=True,
            raw_doc_id=document.raw_doc_id,
            content_length=len(article.text),
        )

    # ------------------------------------------------------------------
    # Full stage
    # ------------------------------------------------------------------

    async def research_artist(
        self,
        artist_id: str,
        artist_name: str,
        aliases: list[str] | None = None,
        objectives: list[str] | None = None,
        limit: int = 10,
    ) -> ResearchStageResult:
        """Discover sources and scrape the best *limit* of them."""
        sources, errors = await self._discover(artist_name, aliases, objectives)
        scraped = 0
        stored = 0
        for source in sources[:limit]:
            try:
                outcome = await self._scrape_one(source.url, artist_id)
            except TechnoDogError as exc:
                logger.warning("research_scrape_failed", url=source.url, error=str(exc))
                errors.append(f"Scrape error {source.url}: {exc.message}")
                continue
            if not outcome.success:
                continue
            scraped += 1
            if outcome.raw_doc_id:
                stored += 1

        result = ResearchStageResult(
            sources_discovered=len(sources),
            sources_scraped=scraped,
            documents_stored=stored,
            errors=errors,
        )
        logger.info(
            "research_stage_complete",
            artist_id=artist_id,
            discovered=result.sources_discovered,
            scraped=result.sources_scraped,
            stored=result.documents_stored,
            errors=len(errors),
        )
        return result
