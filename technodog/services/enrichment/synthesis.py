"""Synthesis stage: verified claims into retrieval-ready artist profiles.

The LLM writes an encyclopedic markdown profile using only the artist's
stored claims.  The profile is split on paragraph boundaries, each chunk
is embedded when an embedding provider is configured, and the chunks are
stored in ``artist_documents`` as ``enriched_profile`` rows.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import timedelta

import structlog

from technodog.interfaces.embedding_provider import IEmbeddingProvider
from technodog.interfaces.enrichment_store import IEnrichmentStore
from technodog.interfaces.llm_provider import ILLMProvider
from technodog.models.enrichment import (
    ArtistDocument,
    ArtistSynthesis,
    CanonicalArtist,
    Claim,
    SynthesisStageResult,
    SynthesisStatus,
    VectorRefresh,
    VerificationStatus,
)
from technodog.models.facts import FactCandidate, ValidFact
from technodog.services.fact_validator import validate_fact
from technodog.services.feature_flags import FeatureFlagService
from technodog.services.ingestion.chunker import TextChunker
from technodog.utils.errors import ConfigurationError, NotFoundError, TechnoDogError
from technodog.utils.query_hash import rolling_hash
from technodog.utils.timestamps import to_db_time, utcnow

logger = structlog.get_logger(logger_name=__name__)

PROFILE_DOCUMENT_TYPE = "enriched_profile"
PIPELINE_SOURCE_SYSTEM = "enrichment_pipeline"

_MAX_CLAIMS = 100
_MAX_METADATA_SOURCES = 10
_PROFILE_MAX_AGE = timedelta(hours=24)

_SYNTHESIS_PROMPT = """Using the verified claims below, synthesize a comprehensive artist knowledge document. Structure it as:

1. **Biography Overview** (2-3 paragraphs)
   - Background, origin, real name if known
   - Career trajectory and key milestones
   - Current status and activities

2. **Musical Style & Sound**
   - Genre and subgenres
   - Production techniques and equipment
   - Influences and influenced artists

3. **Discography Highlights**
   - Key releases, albums, EPs
   - Notable tracks and remixes
   - Label affiliations

4. **Career Achievements**
   - Awards and recognition
   - Festival appearances and residencies
   - Collaborations and side projects

IMPORTANT:
- Only use facts from the verified claims provided
- Write in an encyclopedic, neutral tone
- Include specific dates, names, and details when available
- Do not invent or assume facts not in the claims

VERIFIED CLAIMS:
{claims}

Return the document as markdown."""


def chunk_id(artist_id: str, document_type: str, chunk_index: int) -> str:
    """Deterministic id for one profile chunk."""
    digest = abs(rolling_hash(f"{artist_id}:{document_type}:{chunk_index}"))
    return f"chunk_{digest:x}"


def basic_profile(artist: CanonicalArtist) -> str:
    """Fallback profile built from the canonical artist row alone."""
    location = artist.city or artist.country or "unknown location"
    return (
        f"# {artist.canonical_name}\n\n"
        f"{artist.canonical_name} is a {artist.primary_genre or 'techno'} artist "
        f"from {location}.\n\n"
        "*No verified claims available yet.*"
    )


class SynthesisService:
    """Writes artist profiles from claims and stores them as retrieval chunks.

    Parameters
    ----------
    store:
        Enrichment persistence.
    llm:
        Profile writer; ``None`` is only acceptable for artists without
        usable claims (the canonical fallback profile needs no model).
    embedder:
        Optional embedding provider; chunks are stored without vectors when
        it is ``None`` or fails.
    flags:
        Feature flags; when zero-hallucination is enabled, claims lacking a
        source URL and evidence snippet are left out of the prompt.
    chunker:
        Paragraph chunker (1500 characters by default).
    """

    def __init__(
        self,
        store: IEnrichmentStore,
        llm: ILLMProvider | None,
        embedder: IEmbeddingProvider | None = None,
        flags: FeatureFlagService | None = None,
        chunker: TextChunker | None = None,
        pause_seconds: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._llm = llm
        self._embedder = embedder
        self._flags = flags
        self._chunker = chunker or TextChunker(chunk_size=1500, overlap=0)
        self._pause_seconds = pause_seconds
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Synthesis
    # ------------------------------------------------------------------

    async def _select_claims(
        self, artist_id: str, include_partial: bool
    ) -> tuple[list[Claim], dict[str, list[str]]]:
        statuses = [VerificationStatus.VERIFIED, VerificationStatus.PARTIALLY_VERIFIED]
        if include_partial:
            statuses.append(VerificationStatus.UNVERIFIED)
        claims = await self._store.list_claims(
            artist_id, statuses=statuses, limit=_MAX_CLAIMS, order_by_confidence=True
        )

        enforce = self._flags is not None and self._flags.is_zero_hallucination_enabled()
        kept: list[Claim] = []
        urls_by_claim: dict[str, list[str]] = {}
        for claim in claims:
            links = await self._store.list_claim_sources(claim.claim_id)
            if enforce:
                first = links[0] if links else None
                candidate = FactCandidate(
                    predicate=claim.claim_type.value,
                    value=claim.claim_text,
                    source_url=first.url if first else None,
                    evidence_snippet=first.quote_snippet if first else None,
                    fetched_at=to_db_time(claim.created_at),
                    confidence=claim.confidence_score,
                )
                if not isinstance(validate_fact(candidate), ValidFact):
                    logger.debug("claim_excluded_no_provenance", claim_id=claim.claim_id)
                    continue
            kept.append(claim)
            urls_by_claim[claim.claim_id] = [link.url for link in links]

        if enforce and len(kept) < len(claims):
            logger.info(
                "claims_excluded_by_validator",
                artist_id=artist_id,
                excluded=len(claims) - len(kept),
            )
        return kept, urls_by_claim

    async def synthesize_artist(
        self, artist_id: str, include_partial: bool = True
    ) -> ArtistSynthesis:
        """Generate the markdown profile for *artist_id*.

        Raises
        ------
        NotFoundError
            If the artist does not exist.
        ConfigurationError
            If claims are available but no LLM provider is configured.
        """
        artist = await self._store.get_artist(artist_id)
        if artist is None:
            raise NotFoundError(f"Artist not found: {artist_id}")

        claims, urls_by_claim = await self._select_claims(artist_id, include_partial)
        if not claims:
            logger.info("synthesis_basic_profile", artist_id=artist_id)
            return ArtistSynthesis(artist_id=artist_id, document=basic_profile(artist))

        if self._llm is None:
            raise ConfigurationError("No LLM provider configured for profile synthesis")

        claims_text = "\n".join(
            f"- [{c.claim_type.value}] {c.claim_text} (confidence: {c.confidence_score:.2f})"
            for c in claims
        )
        document = await self._llm.complete(
            system_prompt="You are a music encyclopedia editor creating authoritative artist profiles.",
            user_prompt=f"Artist: {artist.canonical_name}\n\n"
            + _SYNTHESIS_PROMPT.format(claims=claims_text),
            temperature=0.5,
            max_tokens=4000,
        )

        sources: list[str] = []
        for claim in claims:
            for url in urls_by_claim.get(claim.claim_id, []):
                if url not in sources:
                    sources.append(url)

        return ArtistSynthesis(
            artist_id=artist_id,
            document=document or f"# {artist.canonical_name}\n\nProfile generation failed.",
            sources=sources,
            claims_used=len(claims),
        )

    # ------------------------------------------------------------------
    # Retrieval documents
    # ------------------------------------------------------------------

    async def generate_rag_docs(
        self,
        artist_id: str,
        document: str | None = None,
        sources: list[str] | None = None,
        force_regenerate: bool = False,
        include_partial: bool = True,
    ) -> SynthesisStageResult:
        """Chunk, embed and store the profile for *artist_id*.

        When *document* is ``None`` the profile is synthesised first.  An
        existing profile is kept unless *force_regenerate* is set, in which
        case every pipeline document of the artist is replaced.
        """
        claims_used = 0
        if document is None:
            synthesis = await self.synthesize_artist(artist_id, include_partial)
            document, sources, claims_used = (
                synthesis.document,
                synthesis.sources,
                synthesis.claims_used,
            )
        sources = sources or []

        if not force_regenerate:
            existing = await self._store.get_latest_artist_document(
                artist_id, PROFILE_DOCUMENT_TYPE
            )
            if existing is not None:
                logger.info("profile_exists_skipped", artist_id=artist_id)
                return SynthesisStageResult(
                    claims_used=claims_used, document_length=len(document), skipped=True
                )
        else:
            removed = await self._store.delete_artist_documents(artist_id, PIPELINE_SOURCE_SYSTEM)
            logger.debug("profile_documents_removed", artist_id=artist_id, count=removed)

        artist = await self._store.get_artist(artist_id)
        title = f"{artist.canonical_name if artist else artist_id} - Enriched Profile"
        chunks = self._chunker.paragraphs(document)
        generated_at = utcnow()

        stored = 0
        embedded = 0
        errors: list[str] = []
        for index, chunk in enumerate(chunks):
            embedding = await self._embed(chunk)
            try:
                await self._store.insert_artist_document(
                    ArtistDocument(
                        document_id=chunk_id(artist_id, PROFILE_DOCUMENT_TYPE, index),
                        artist_id=artist_id,
                        document_type=PROFILE_DOCUMENT_TYPE,
                        title=title,
                        content=chunk,
                        chunk_index=index,
                        embedding=embedding,
                        source_system=PIPELINE_SOURCE_SYSTEM,
                        metadata={
                            "sources": sources[:_MAX_METADATA_SOURCES],
                            "generated_at": generated_at.isoformat(),
                            "total_chunks": len(chunks),
                        },
                        created_at=generated_at,
                        updated_at=generated_at,
                    )
                )
            except TechnoDogError as exc:
                logger.warning("profile_chunk_insert_failed", index=index, error=str(exc))
                errors.append(f"Chunk {index}: {exc.message}")
                continue
            stored += 1
            if embedding is not None:
                embedded += 1

        logger.info(
            "synthesis_stage_complete",
            artist_id=artist_id,
            chunks=stored,
            embeddings=embedded,
        )
        return SynthesisStageResult(
            claims_used=claims_used,
            document_length=len(document),
            chunks_created=stored,
            embeddings_generated=embedded,
            errors=errors,
        )

    async def _embed(self, text: str) -> list[float] | None:
        if self._embedder is None:
            return None
        try:
            return await self._embedder.embed_single(text)
        except TechnoDogError as exc:
            logger.warning("embedding_failed", error=str(exc))
            return None

    async def update_vectors(self, limit: int = 50) -> list[VectorRefresh]:
        """Regenerate stale or missing profiles for artists with verified claims."""
        refreshed: list[VectorRefresh] = []
        cutoff = utcnow() - _PROFILE_MAX_AGE
        for artist_id in await self._store.list_artists_with_verified_claims(limit):
            existing = await self._store.get_latest_artist_document(
                artist_id, PROFILE_DOCUMENT_TYPE
            )
            if existing is not None and existing.updated_at >= cutoff:
                continue
            if refreshed:
                await self._sleep(self._pause_seconds)
            try:
                result = await self.generate_rag_docs(artist_id, force_regenerate=True)
            except TechnoDogError as exc:
                logger.warning("vector_refresh_failed", artist_id=artist_id, error=str(exc))
                continue
            artist = await self._store.get_artist(artist_id)
            refreshed.append(
                VectorRefresh(
                    artist_id=artist_id,
                    name=artist.canonical_name if artist else artist_id,
                    result=result,
                )
            )
        logger.info("vector_refresh_complete", artists=len(refreshed))
        return refreshed

    async def status(self) -> SynthesisStatus:
        return SynthesisStatus(
            total_artists=await self._store.count_artists(),
            artists_with_verified_claims=await self._store.count_artists_with_verified_claims(),
            artists_with_enriched_docs=await self._store.count_artists_with_documents(
                PROFILE_DOCUMENT_TYPE
            ),
            total_enriched_docs=await self._store.count_artist_documents(PROFILE_DOCUMENT_TYPE),
        )
