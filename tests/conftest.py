"""Shared pytest fixtures for the techno.dog knowledge-layer test suite."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from technodog.interfaces.article_provider import ArticleContent, IArticleProvider
from technodog.interfaces.embedding_provider import IEmbeddingProvider
from technodog.interfaces.llm_provider import ILLMProvider
from technodog.interfaces.web_search_provider import IWebSearchProvider, SearchResult
from technodog.models.enrichment import (
    CanonicalArtist,
    Claim,
    ClaimSource,
    ClaimType,
    RawDocument,
    VerificationStatus,
)
from technodog.providers.enrichment.sqlite_enrichment_store import SQLiteEnrichmentStore
from technodog.providers.flags.memory_storage import MemoryFlagStorage
from technodog.services.feature_flags import FeatureFlagService
from technodog.utils.concurrency import RequestPacer

ARTIST_ID = "artist-jeff-mills"

LONG_ARTICLE = (
    "Jeff Mills is an American techno DJ and producer from Detroit, Michigan. "
    "He co-founded the collective Underground Resistance with Mike Banks in 1989 "
    "and launched the label Axis Records in 1992. His 1996 release 'The Bells' "
    "became one of the defining tracks of Detroit techno."
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def no_sleep(_seconds: float) -> None:
    """Injected in place of ``asyncio.sleep`` so pacing never slows tests."""


def llm_json(payload: dict[str, Any]) -> str:
    """Render *payload* the way a chatty model would: fenced JSON."""
    return f"```json\n{json.dumps(payload)}\n```"


def make_claim(
    claim_id: str,
    text: str = "Jeff Mills was born in Detroit.",
    status: VerificationStatus = VerificationStatus.UNVERIFIED,
    confidence: float = 0.7,
    claim_type: ClaimType = ClaimType.BIRTHPLACE,
    artist_id: str = ARTIST_ID,
) -> Claim:
    return Claim(
        claim_id=claim_id,
        artist_id=artist_id,
        claim_type=claim_type,
        claim_text=text,
        confidence_score=confidence,
        verification_status=status,
        extraction_model="test-model",
    )


def make_raw_document(
    raw_doc_id: str = "doc-1",
    url: str = "https://www.discogs.com/artist/jeff-mills",
    content: str = LONG_ARTICLE,
    artist_id: str = ARTIST_ID,
) -> RawDocument:
    return RawDocument(
        raw_doc_id=raw_doc_id,
        artist_id=artist_id,
        url=url,
        domain="discogs.com",
        content_text=content,
        content_hash=f"hash-{raw_doc_id}",
    )


# ---------------------------------------------------------------------------
# Provider mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_llm() -> MagicMock:
    """LLM provider whose ``complete`` returns an empty JSON object."""
    llm = MagicMock(spec=ILLMProvider)
    llm.complete = AsyncMock(return_value="{}")
    llm.get_provider_name.return_value = "mock-llm"
    llm.get_model_name.return_value = "mock-model-1"
    llm.is_available.return_value = True
    return llm


@pytest.fixture
def mock_embedder() -> MagicMock:
    embedder = MagicMock(spec=IEmbeddingProvider)
    embedder.embed_single = AsyncMock(return_value=[0.1, 0.2, 0.3])
    embedder.embed = AsyncMock(return_value=[[0.1, 0.2, 0.3]])
    embedder.get_dimension.return_value = 3
    embedder.get_provider_name.return_value = "mock-embedder"
    embedder.is_available.return_value = True
    return embedder


@pytest.fixture
def mock_search() -> MagicMock:
    search = MagicMock(spec=IWebSearchProvider)
    search.search = AsyncMock(
        return_value=[
            SearchResult(
                title="Jeff Mills | Discogs",
                url="https://www.discogs.com/artist/jeff-mills",
                snippet="Discography",
            ),
            SearchResult(
                title="Jeff Mills - Wikipedia",
                url="https://en.wikipedia.org/wiki/Jeff_Mills",
                snippet="American DJ",
            ),
        ]
    )
    search.get_provider_name.return_value = "mock-search"
    return search


@pytest.fixture
def mock_scraper() -> MagicMock:
    scraper = MagicMock(spec=IArticleProvider)

    async def _extract(url: str) -> ArticleContent:
        return ArticleContent(title="Jeff Mills", text=f"{LONG_ARTICLE} ({url})", url=url)

    scraper.extract_content = AsyncMock(side_effect=_extract)
    scraper.get_provider_name.return_value = "mock-scraper"
    return scraper


@pytest.fixture
def fast_pacer() -> RequestPacer:
    return RequestPacer(min_interval=0.0, max_retries=3, backoff=0.0, sleep=no_sleep)


# ---------------------------------------------------------------------------
# Flags / storage
# ---------------------------------------------------------------------------


@pytest.fixture
def flags() -> FeatureFlagService:
    """Flag service on in-memory storage with the default (safe) values."""
    return FeatureFlagService(MemoryFlagStorage())


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "technodog.db"


@pytest_asyncio.fixture
async def enrichment_store(db_path: Path) -> SQLiteEnrichmentStore:
    store = SQLiteEnrichmentStore(db_path=db_path)
    await store.initialize()
    return store


@pytest_asyncio.fixture
async def seeded_store(enrichment_store: SQLiteEnrichmentStore) -> SQLiteEnrichmentStore:
    """Store holding one canonical artist with one alias."""
    await enrichment_store.upsert_artist(
        CanonicalArtist(
            artist_id=ARTIST_ID,
            canonical_name="Jeff Mills",
            country="USA",
            city="Detroit",
            primary_genre="techno",
            aliases=["The Wizard"],
        )
    )
    return enrichment_store


async def add_claim_with_source(
    store: SQLiteEnrichmentStore,
    claim: Claim,
    url: str = "https://en.wikipedia.org/wiki/Jeff_Mills",
    snippet: str | None = "born in Detroit",
    raw_doc_id: str | None = None,
) -> Claim:
    await store.insert_claim(claim)
    await store.insert_claim_source(
        ClaimSource(
            source_id=f"src-{claim.claim_id}",
            claim_id=claim.claim_id,
            raw_doc_id=raw_doc_id,
            url=url,
            domain="en.wikipedia.org",
            quote_snippet=snippet,
        )
    )
    return claim
