"""FastAPI routes for the techno.dog knowledge layer.

Service dependencies are resolved from ``app.state`` through ``Depends``
using the ``Annotated`` pattern; ``main._build_all`` populates the state at
startup.

# ─── API ROUTE MAP (Junior Developer Guide) ───────────────────────────
#
# Endpoint                            Method    Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/health                      GET       Health + provider status
# /api/v1/flags                       GET/PUT   Read / update feature flags
# /api/v1/flags/reset                 POST      Restore default flags
# /api/v1/flags/admin-mode            POST      Apply the admin preset
# /api/v1/flags/disable-all           POST      Switch every feature off
# /api/v1/cache/stats                 GET       Hit/miss counters + row count
# /api/v1/cache/cleanup               POST      Delete expired cache rows
# /api/v1/cache/invalidate            POST      Delete one cached query
# /api/v1/knowledge/search            GET       Cached document search
# /api/v1/knowledge-ingest            POST      ingest | suggest-topics | stats
# /api/v1/artist-enrichment           POST      Orchestrator actions
# /api/v1/artist-research             POST      Research stage actions
# /api/v1/artist-extraction           POST      Extraction stage actions
# /api/v1/artist-verification         POST      Verification stage actions
# /api/v1/artist-synthesis            POST      Synthesis stage actions
# /api/v1/facts/validate              POST      Zero-hallucination check
#
# Action endpoints answer 400 for an unknown action or a missing
# parameter.  Application errors are mapped by ErrorHandlingMiddleware
# (404 for unknown artists/claims/documents, 500 otherwise).
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from technodog.api.schemas import (
    CacheInvalidateRequest,
    CacheStatsResponse,
    EnrichmentRequest,
    ExtractionRequest,
    FactValidationRequest,
    FlagsResponse,
    HealthResponse,
    IngestRequest,
    ResearchRequest,
    SynthesisRequest,
    VerificationRequest,
)
from technodog.pipeline.orchestrator import EnrichmentOrchestrator
from technodog.services.enrichment.extraction import ExtractionService
from technodog.services.enrichment.research import ResearchService
from technodog.services.enrichment.synthesis import SynthesisService
from technodog.services.enrichment.verification import VerificationService
from technodog.services.fact_validator import validate_facts
from technodog.services.feature_flags import FeatureFlagService
from technodog.services.ingestion.ingestion_service import KnowledgeIngestionService
from technodog.services.knowledge_cache import KnowledgeCache
from technodog.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_flags(request: Request) -> FeatureFlagService:
    return request.app.state.flags


def _get_cache(request: Request) -> KnowledgeCache:
    return request.app.state.knowledge_cache


def _get_ingestion(request: Request) -> KnowledgeIngestionService:
    return request.app.state.ingestion_service


def _get_orchestrator(request: Request) -> EnrichmentOrchestrator:
    return request.app.state.orchestrator


def _get_research(request: Request) -> ResearchService:
    return request.app.state.research_service


def _get_extraction(request: Request) -> ExtractionService:
    return request.app.state.extraction_service


def _get_verification(request: Request) -> VerificationService:
    return request.app.state.verification_service


def _get_synthesis(request: Request) -> SynthesisService:
    return request.app.state.synthesis_service


FlagsDep = Annotated[FeatureFlagService, Depends(_get_flags)]
CacheDep = Annotated[KnowledgeCache, Depends(_get_cache)]
IngestionDep = Annotated[KnowledgeIngestionService, Depends(_get_ingestion)]
OrchestratorDep = Annotated[EnrichmentOrchestrator, Depends(_get_orchestrator)]
ResearchDep = Annotated[ResearchService, Depends(_get_research)]
ExtractionDep = Annotated[ExtractionService, Depends(_get_extraction)]
VerificationDep = Annotated[VerificationService, Depends(_get_verification)]
SynthesisDep = Annotated[SynthesisService, Depends(_get_synthesis)]


def _require(value: Any, name: str) -> Any:
    if value is None or value == "" or value == []:
        raise HTTPException(status_code=400, detail=f"{name} required")
    return value


def _unknown_action(action: str) -> HTTPException:
    return HTTPException(status_code=400, detail=f"Unknown action: {action}")


def _ok(**payload: Any) -> dict[str, Any]:
    return {"success": True, **payload}


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and provider availability.

    Storage is the only critical dependency; without an LLM the service is
    ``degraded`` (cache, ingestion without entities, and dashboards still work).
    """
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))
    cache: KnowledgeCache | None = getattr(request.app.state, "knowledge_cache", None)
    storage_ok = cache is not None
    providers["storage"] = storage_ok

    if storage_ok and providers.get("llm", False):
        status = "healthy"
    elif storage_ok:
        status = "degraded"
    else:
        status = "unhealthy"
    return HealthResponse(status=status, version=_VERSION, providers=providers)


# ---------------------------------------------------------------------------
# Feature flags
# ---------------------------------------------------------------------------


@router.get("/flags", response_model=FlagsResponse)
async def get_flags(flags: FlagsDep) -> FlagsResponse:
    return FlagsResponse(flags=flags.get().to_storage())


@router.put("/flags", response_model=FlagsResponse)
async def update_flags(updates: dict[str, bool], flags: FlagsDep) -> FlagsResponse:
    """Apply a partial update; keys may be field names or storage names."""
    try:
        updated = flags.set_many(updates)
    except KeyError as exc:
        raise HTTPException(status_code=400, detail=f"Unknown flag: {exc.args[0]}") from exc
    return FlagsResponse(flags=updated.to_storage())


@router.post("/flags/reset", response_model=FlagsResponse)
async def reset_flags(flags: FlagsDep) -> FlagsResponse:
    return FlagsResponse(flags=flags.reset().to_storage())


@router.post("/flags/admin-mode", response_model=FlagsResponse)
async def enable_admin_mode(flags: FlagsDep) -> FlagsResponse:
    return FlagsResponse(flags=flags.enable_admin_mode().to_storage())


@router.post("/flags/disable-all", response_model=FlagsResponse)
async def disable_all_flags(flags: FlagsDep) -> FlagsResponse:
    return FlagsResponse(flags=flags.disable_all().to_storage())


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


@router.get("/cache/stats", response_model=CacheStatsResponse)
async def cache_stats(cache: CacheDep) -> CacheStatsResponse:
    stats = cache.get_stats()
    return CacheStatsResponse(
        hits=stats.hits,
        misses=stats.misses,
        hit_rate=stats.hit_rate,
        entries=await cache.entry_count(),
        pending_writes=cache.tasks.pending,
    )


@router.post("/cache/cleanup")
async def cache_cleanup(cache: CacheDep) -> dict[str, Any]:
    return _ok(removed=await cache.clear_expired_cache())


@router.post("/cache/invalidate")
async def cache_invalidate(body: CacheInvalidateRequest, cache: CacheDep) -> dict[str, Any]:
    try:
        removed = await cache.invalidate_cache(body.query_text, body.cache_type, body.filters)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _ok(removed=removed)


# ---------------------------------------------------------------------------
# Knowledge ingestion / search
# ---------------------------------------------------------------------------


@router.get("/knowledge/search")
async def knowledge_search(
    ingestion: IngestionDep,
    q: Annotated[str, Query(min_length=1)],
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> dict[str, Any]:
    lookup = await ingestion.search(q, limit)
    return _ok(results=lookup.data, from_cache=lookup.from_cache)


@router.post("/knowledge-ingest")
async def knowledge_ingest(body: IngestRequest, ingestion: IngestionDep) -> dict[str, Any]:
    """Ingest sources, list remaining curated topics, or report counts."""
    if body.action == "ingest":
        _require(body.sources, "sources")
        result = await ingestion.ingest(
            body.sources,
            extract_entities=body.extract_entities,
            generate_embeddings=body.generate_embeddings,
        )
        return _ok(**result.model_dump(by_alias=True))
    if body.action == "suggest-topics":
        suggestions = await ingestion.suggest_topics()
        return _ok(**suggestions.model_dump(mode="json", by_alias=True))
    if body.action == "stats":
        stats = await ingestion.stats()
        return _ok(stats=stats.model_dump(by_alias=True))
    raise _unknown_action(body.action)


# ---------------------------------------------------------------------------
# Artist enrichment
# ---------------------------------------------------------------------------


@router.post("/artist-enrichment")
async def artist_enrichment(
    body: EnrichmentRequest, orchestrator: OrchestratorDep
) -> dict[str, Any]:
    if body.action == "enrich_artist":
        result = await orchestrator.enrich_artist(
            _require(body.artist_id, "artist_id"), body.objectives
        )
        return _ok(**result.model_dump(mode="json"))
    if body.action == "queue_artist":
        queued = await orchestrator.queue_artist(
            _require(body.artist_id, "artist_id"),
            priority=body.priority,
            reason=body.reason or "manual_request",
        )
        return _ok(**queued.model_dump())
    if body.action == "process_queue":
        processed = await orchestrator.process_queue(limit=body.limit)
        return _ok(**processed.model_dump(mode="json"))
    if body.action == "status":
        report = await orchestrator.status()
        return _ok(**report.model_dump(mode="json"))
    if body.action == "dashboard":
        dashboard = await orchestrator.dashboard()
        return _ok(dashboard=dashboard.model_dump(mode="json"))
    raise _unknown_action(body.action)


@router.post("/artist-research")
async def artist_research(body: ResearchRequest, research: ResearchDep) -> dict[str, Any]:
    if body.action == "search":
        results = await research.search(_require(body.query, "query"), body.limit)
        return _ok(results=[r.model_dump() for r in results])
    if body.action == "scrape":
        outcomes = await research.scrape(
            _require(body.urls, "urls"), _require(body.artist_id, "artist_id")
        )
        return _ok(results=[o.model_dump() for o in outcomes])
    if body.action == "discover":
        sources = await research.discover(
            _require(body.artist_name, "artist_name"), body.aliases, body.objectives
        )
        return _ok(sources=[s.model_dump() for s in sources], total=len(sources))
    if body.action == "research_artist":
        stats = await research.research_artist(
            _require(body.artist_id, "artist_id"),
            _require(body.artist_name, "artist_name"),
            body.aliases,
            body.objectives,
            limit=body.limit,
        )
        return _ok(stats=stats.model_dump())
    raise _unknown_action(body.action)


@router.post("/artist-extraction")
async def artist_extraction(body: ExtractionRequest, extraction: ExtractionDep) -> dict[str, Any]:
    if body.action == "extract_from_document":
        result = await extraction.extract_from_document(
            _require(body.raw_doc_id, "raw_doc_id"), _require(body.artist_id, "artist_id")
        )
        return _ok(**result.model_dump(mode="json"))
    if body.action == "extract_batch":
        result = await extraction.extract_batch(_require(body.artist_id, "artist_id"), body.limit)
        return _ok(**result.model_dump())
    if body.action == "status":
        stats = await extraction.status(_require(body.artist_id, "artist_id"))
        return _ok(stats=stats.model_dump())
    raise _unknown_action(body.action)


@router.post("/artist-verification")
async def artist_verification(
    body: VerificationRequest, verification: VerificationDep
) -> dict[str, Any]:
    if body.action == "verify_claim":
        result = await verification.verify_claim(_require(body.claim_id, "claim_id"))
        return _ok(result=result.model_dump(mode="json"))
    if body.action == "verify_batch":
        stats = await verification.verify_batch(_require(body.artist_id, "artist_id"), body.limit)
        return _ok(stats=stats.model_dump())
    if body.action == "detect_contradictions":
        found = await verification.detect_contradictions(_require(body.artist_id, "artist_id"))
        return _ok(
            contradictions_found=len(found), contradictions=[c.model_dump() for c in found]
        )
    if body.action == "verify_artist":
        stats = await verification.verify_artist(_require(body.artist_id, "artist_id"), body.limit)
        return _ok(**stats.model_dump())
    raise _unknown_action(body.action)


@router.post("/artist-synthesis")
async def artist_synthesis(body: SynthesisRequest, synthesis: SynthesisDep) -> dict[str, Any]:
    if body.action == "synthesize_artist":
        result = await synthesis.synthesize_artist(
            _require(body.artist_id, "artist_id"), body.include_partial
        )
        return _ok(
            document=result.document,
            sources=result.sources,
            sources_count=len(result.sources),
        )
    if body.action == "generate_rag_docs":
        result = await synthesis.generate_rag_docs(
            _require(body.artist_id, "artist_id"),
            force_regenerate=body.force_regenerate,
            include_partial=body.include_partial,
        )
        return _ok(**result.model_dump())
    if body.action == "update_vectors":
        refreshed = await synthesis.update_vectors(body.limit)
        return _ok(
            artists_processed=len(refreshed), results=[r.model_dump() for r in refreshed]
        )
    if body.action == "status":
        status = await synthesis.status()
        return _ok(stats=status.model_dump())
    raise _unknown_action(body.action)


# ---------------------------------------------------------------------------
# Facts
# ---------------------------------------------------------------------------


@router.post("/facts/validate")
async def facts_validate(body: FactValidationRequest, flags: FlagsDep) -> dict[str, Any]:
    results = validate_facts(body.facts)
    flags.log_shadow_activity(
        "facts_validate", {"facts": len(body.facts), "results": len(results)}
    )
    return _ok(results=[r.model_dump(mode="json") for r in results])
