"""techno.dog domain models; re-exports all public model classes.

Submodules by concern:
    - cache.py       - cache categories, TTL policy, rows, hit/miss stats
    - enrichment.py  - artists, raw documents, claims, runs, queue, stage results
    - facts.py       - provenance-checked facts (zero-hallucination validator)
    - flags.py       - knowledge-layer feature flags
    - knowledge.py   - ingestion sources, entities, documents, results
"""

from __future__ import annotations

from technodog.models.cache import (
    CACHE_TTL,
    CacheEntry,
    CacheLookup,
    CacheStats,
    CacheType,
)
from technodog.models.enrichment import (
    ArtistDocument,
    ArtistSynthesis,
    CanonicalArtist,
    Claim,
    ClaimSource,
    ClaimStats,
    ClaimType,
    ClaimVerdict,
    ClaimVerification,
    Contradiction,
    DiscoveredSource,
    DocumentExtraction,
    EnrichmentDashboard,
    EnrichmentResult,
    EnrichmentRun,
    EnrichmentStage,
    EnrichmentStatusReport,
    ExtractionStageResult,
    QueueItem,
    QueuedArtist,
    QueueProcessResult,
    QueueStatus,
    RawDocument,
    ResearchStageResult,
    RunStatus,
    ScrapeOutcome,
    SourceDomain,
    SynthesisStageResult,
    SynthesisStatus,
    VectorRefresh,
    VerificationStageResult,
    VerificationStatus,
    can_transition,
)
from technodog.models.facts import (
    ConflictingFact,
    FactCandidate,
    FactResult,
    FactStatus,
    UnverifiedFact,
    UnverifiedReason,
    ValidFact,
)
from technodog.models.flags import FLAGS_STORAGE_KEY, KnowledgeFeatureFlags
from technodog.models.knowledge import (
    EntityRelationship,
    EntityType,
    ExtractionResult,
    KnowledgeDocument,
    KnowledgeEntity,
    KnowledgeIngestionResult,
    KnowledgeSource,
    KnowledgeStats,
    SourceType,
    SuggestedTopic,
    TopicSuggestions,
    WikipediaArticle,
)

__all__ = [
    "CACHE_TTL",
    "FLAGS_STORAGE_KEY",
    "ArtistDocument",
    "ArtistSynthesis",
    "CacheEntry",
    "CacheLookup",
    "CacheStats",
    "CacheType",
    "CanonicalArtist",
    "Claim",
    "ClaimSource",
    "ClaimStats",
    "ClaimType",
    "ClaimVerdict",
    "ClaimVerification",
    "ConflictingFact",
    "Contradiction",
    "DiscoveredSource",
    "DocumentExtraction",
    "EnrichmentDashboard",
    "EnrichmentResult",
    "EnrichmentRun",
    "EnrichmentStage",
    "EnrichmentStatusReport",
    "EntityRelationship",
    "EntityType",
    "ExtractionResult",
    "ExtractionStageResult",
    "FactCandidate",
    "FactResult",
    "FactStatus",
    "KnowledgeDocument",
    "KnowledgeEntity",
    "KnowledgeFeatureFlags",
    "KnowledgeIngestionResult",
    "KnowledgeSource",
    "KnowledgeStats",
    "QueueItem",
    "QueueProcessResult",
    "QueuedArtist",
    "QueueStatus",
    "RawDocument",
    "ResearchStageResult",
    "RunStatus",
    "ScrapeOutcome",
    "SourceDomain",
    "SourceType",
    "SuggestedTopic",
    "SynthesisStageResult",
    "SynthesisStatus",
    "TopicSuggestions",
    "UnverifiedFact",
    "UnverifiedReason",
    "ValidFact",
    "VectorRefresh",
    "VerificationStageResult",
    "VerificationStatus",
    "WikipediaArticle",
    "can_transition",
]
