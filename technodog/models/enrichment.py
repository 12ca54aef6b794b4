"""Artist enrichment models.

Covers the canonical artist record, scraped raw documents, atomic claims
with their verification lifecycle, enrichment runs, the enrichment queue,
and the typed results each pipeline stage hands to the next.

Claim lifecycle
---------------
A claim's ``verification_status`` only ever moves forward::

    unverified ──> partially_verified ──> verified
        │   └────────────> disputed ───────┘
        └──────────────────────────────────┘

Transitions are driven by an LLM judgement, never by deterministic rules.
:func:`can_transition` is the single place that encodes the allowed moves.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class EnrichmentStage(str, Enum):  # noqa: UP042
    """Stages of the enrichment pipeline, in execution order."""

    RESEARCH = "research"
    EXTRACTION = "extraction"
    VERIFICATION = "verification"
    SYNTHESIS = "synthesis"


class ClaimType(str, Enum):  # noqa: UP042
    """Claim categories the extraction prompt may emit."""

    BIO_FACT = "bio_fact"
    BIRTHPLACE = "birthplace"
    BIRTH_DATE = "birth_date"
    REAL_NAME = "real_name"
    RELEASE = "release"
    ALBUM = "album"
    TRACK = "track"
    REMIX = "remix"
    LABEL = "label"
    LABEL_FOUNDER = "label_founder"
    GENRE = "genre"
    SUBGENRE = "subgenre"
    STYLE = "style"
    INFLUENCE = "influence"
    INFLUENCED_BY = "influenced_by"
    COLLABORATOR = "collaborator"
    COLLABORATION = "collaboration"
    AWARD = "award"
    ACHIEVEMENT = "achievement"
    MILESTONE = "milestone"
    TOURING = "touring"
    RESIDENCY = "residency"
    FESTIVAL = "festival"
    EQUIPMENT = "equipment"
    GEAR = "gear"
    TECHNIQUE = "technique"
    EDUCATION = "education"
    CAREER_START = "career_start"
    ALIAS = "alias"
    SIDE_PROJECT = "side_project"
    QUOTE = "quote"
    PHILOSOPHY = "philosophy"

    @classmethod
    def coerce(cls, value: str | None) -> ClaimType:
        """Map unknown or missing types to :attr:`BIO_FACT`."""
        if value and value in cls._value2member_map_:
            return cls(value)
        return cls.BIO_FACT


class VerificationStatus(str, Enum):  # noqa: UP042
    UNVERIFIED = "unverified"
    PARTIALLY_VERIFIED = "partially_verified"
    VERIFIED = "verified"
    DISPUTED = "disputed"


_ALLOWED_TRANSITIONS: dict[VerificationStatus, frozenset[VerificationStatus]] = {
    VerificationStatus.UNVERIFIED: frozenset(
        {
            VerificationStatus.PARTIALLY_VERIFIED,
            VerificationStatus.DISPUTED,
            VerificationStatus.VERIFIED,
        }
    ),
    VerificationStatus.PARTIALLY_VERIFIED: frozenset(
        {VerificationStatus.DISPUTED, VerificationStatus.VERIFIED}
    ),
    VerificationStatus.DISPUTED: frozenset({VerificationStatus.VERIFIED}),
    VerificationStatus.VERIFIED: frozenset(),
}


def can_transition(current: VerificationStatus, target: VerificationStatus) -> bool:
    """Return ``True`` if a claim may move from *current* to *target*."""
    return target in _ALLOWED_TRANSITIONS[current]


class RunStatus(str, Enum):  # noqa: UP042
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class QueueStatus(str, Enum):  # noqa: UP042
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------


class CanonicalArtist(BaseModel):
    """Row of ``canonical_artists`` plus its aliases."""

    model_config = ConfigDict(frozen=True)

    artist_id: str
    canonical_name: str
    slug: str | None = None
    country: str | None = None
    city: str | None = None
    primary_genre: str | None = None
    active_years: str | None = None
    aliases: list[str] = Field(default_factory=list)


class SourceDomain(BaseModel):
    """Quality metadata for a web domain (``source_domain_registry``)."""

    model_config = ConfigDict(frozen=True)

    domain: str
    quality_score: float = Field(default=0.5, ge=0.0, le=1.0)
    is_blocked: bool = False
    is_primary_source: bool = False


class RawDocument(BaseModel):
    """A scraped web page stored for claim extraction."""

    model_config = ConfigDict(frozen=True)

    raw_doc_id: str
    artist_id: str
    url: str
    domain: str
    content_text: str
    content_markdown: str | None = None
    content_hash: str
    created_at: datetime = Field(default_factory=_utcnow)


class Claim(BaseModel):
    """An atomic factual assertion about an artist."""

    model_config = ConfigDict(frozen=True)

    claim_id: str
    artist_id: str
    claim_type: ClaimType = ClaimType.BIO_FACT
    claim_text: str
    value_structured: dict[str, Any] | None = None
    confidence_score: float = Field(default=0.5, ge=0.0, le=1.0)
    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED
    contradicts_claim_id: str | None = None
    extraction_model: str | None = None
    verification_model: str | None = None
    verified_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class ClaimSource(BaseModel):
    """Links a claim to the raw document (and snippet) it came from."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    claim_id: str
    raw_doc_id: str | None = None
    url: str
    domain: str | None = None
    quote_snippet: str | None = None
    source_quality_score: float = 0.5


class ArtistDocument(BaseModel):
    """A retrieval chunk of a synthesised artist profile."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    artist_id: str
    document_type: str = "enriched_profile"
    title: str
    content: str
    chunk_index: int = 0
    embedding: list[float] | None = None
    source_system: str = "enrichment_pipeline"
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class EnrichmentRun(BaseModel):
    """One orchestration attempt for one artist."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    artist_id: str
    run_type: str = "full"
    status: RunStatus = RunStatus.RUNNING
    started_at: datetime = Field(default_factory=_utcnow)
    finished_at: datetime | None = None
    stats: dict[str, Any] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    models_used: list[str] = Field(default_factory=list)


class QueueItem(BaseModel):
    """Row of ``artist_enrichment_queue``."""

    model_config = ConfigDict(frozen=True)

    queue_id: str
    artist_id: str
    priority: int = 0
    reason: str = "manual_request"
    status: QueueStatus = QueueStatus.PENDING
    attempts: int = 0
    last_attempt_at: datetime | None = None
    last_error: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Stage inputs / outputs
# ---------------------------------------------------------------------------


class DiscoveredSource(BaseModel):
    """A search hit annotated with domain quality."""

    model_config = ConfigDict(frozen=True)

    url: str
    title: str = ""
    snippet: str | None = None
    domain: str
    quality_score: float = 0.5
    is_primary_source: bool = False
    query: str = ""


class ScrapeOutcome(BaseModel):
    """Result of scraping one URL."""

    model_config = ConfigDict(frozen=True)

    url: str
    success: bool
    raw_doc_id: str | None = None
    content_length: int = 0
    duplicate: bool = False
    error: str | None = None


class ResearchStageResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    sources_discovered: int = 0
    sources_scraped: int = 0
    documents_stored: int = 0
    errors: list[str] = Field(default_factory=list)


class ExtractionStageResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    documents_processed: int = 0
    claims_extracted: int = 0
    errors: list[str] = Field(default_factory=list)


class ClaimVerdict(BaseModel):
    """The LLM's judgement of one claim."""

    model_config = ConfigDict(frozen=True)

    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED
    confidence_score: float = Field(default=0.5, ge=0.0, le=1.0)
    reasoning: str = ""
    contradictions: list[str] = Field(default_factory=list)
    source_quality_assessment: str = ""

    @field_validator("confidence_score", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        try:
            return max(0.0, min(1.0, float(value)))
        except (TypeError, ValueError):
            return 0.5

    @field_validator("verification_status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        if isinstance(value, str) and value in VerificationStatus._value2member_map_:
            return value
        if isinstance(value, VerificationStatus):
            return value
        return VerificationStatus.UNVERIFIED


class VerificationStageResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    claims_verified: int = 0
    verified: int = 0
    partially_verified: int = 0
    disputed: int = 0
    unverified: int = 0
    contradictions_found: int = 0
    errors: list[str] = Field(default_factory=list)


class SynthesisStageResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    claims_used: int = 0
    document_length: int = 0
    chunks_created: int = 0
    embeddings_generated: int = 0
    skipped: bool = False
    errors: list[str] = Field(default_factory=list)


class EnrichmentResult(BaseModel):
    """Outcome of :meth:`EnrichmentOrchestrator.enrich_artist`."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    artist_id: str
    artist_name: str
    status: RunStatus
    stats: dict[str, Any] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)


class QueueProcessResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    processed: int = 0
    completed: int = 0
    failed: int = 0
    requeued: int = 0
    skipped: bool = False
    results: list[dict[str, Any]] = Field(default_factory=list)


class DocumentExtraction(BaseModel):
    """Claims extracted from one raw document."""

    model_config = ConfigDict(frozen=True)

    raw_doc_id: str
    claims_extracted: int = 0
    claims: list[Claim] = Field(default_factory=list)


class ClaimStats(BaseModel):
    """Claim totals for one artist, by status and by type."""

    model_config = ConfigDict(frozen=True)

    total_claims: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)


class ClaimVerification(BaseModel):
    """A verdict for one claim and whether it changed the stored status."""

    model_config = ConfigDict(frozen=True)

    claim_id: str
    verdict: ClaimVerdict
    applied: bool = False
    error: str | None = None


class Contradiction(BaseModel):
    """Two claims of the same artist that cannot both be true."""

    model_config = ConfigDict(frozen=True)

    claim_a_id: str
    claim_b_id: str
    conflict_type: str = "fact"
    description: str = ""
    recommended_resolution: str = ""


class ArtistSynthesis(BaseModel):
    """A generated markdown profile and the source URLs behind it."""

    model_config = ConfigDict(frozen=True)

    artist_id: str
    document: str
    sources: list[str] = Field(default_factory=list)
    claims_used: int = 0


class VectorRefresh(BaseModel):
    """Outcome of regenerating one artist's retrieval documents."""

    model_config = ConfigDict(frozen=True)

    artist_id: str
    name: str
    result: SynthesisStageResult


class SynthesisStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_artists: int = 0
    artists_with_verified_claims: int = 0
    artists_with_enriched_docs: int = 0
    total_enriched_docs: int = 0


class QueuedArtist(BaseModel):
    model_config = ConfigDict(frozen=True)

    queued: bool
    queue_id: str | None = None


class EnrichmentStatusReport(BaseModel):
    """Queue counts and the most recent runs."""

    model_config = ConfigDict(frozen=True)

    queue: dict[str, int] = Field(default_factory=dict)
    recent_runs: list[dict[str, Any]] = Field(default_factory=list)


class EnrichmentDashboard(BaseModel):
    """Aggregate view over queue, claims, documents, artists and runs."""

    model_config = ConfigDict(frozen=True)

    queue: dict[str, int] = Field(default_factory=dict)
    claims: dict[str, Any] = Field(default_factory=dict)
    documents: dict[str, int] = Field(default_factory=dict)
    artists: dict[str, int] = Field(default_factory=dict)
    top_sources: list[dict[str, Any]] = Field(default_factory=list)
    recent_runs: list[dict[str, Any]] = Field(default_factory=list)
