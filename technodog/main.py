"""techno.dog knowledge-layer FastAPI application entry point.

Wires together every provider and service via dependency injection,
loads configuration from ``.env`` and ``config/config.yaml``, configures
structured logging, and mounts the ``/api/v1`` routes.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from technodog.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from technodog.api.routes import router as api_router
from technodog.config.loader import load_config
from technodog.config.settings import Settings
from technodog.interfaces.embedding_provider import IEmbeddingProvider
from technodog.pipeline.orchestrator import EnrichmentOrchestrator
from technodog.pipeline.progress_tracker import ProgressTracker
from technodog.providers.article.web_scraper_provider import WebScraperProvider
from technodog.providers.article.wikipedia_provider import WikipediaProvider
from technodog.providers.cache.sqlite_cache import SQLiteCacheProvider
from technodog.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from technodog.providers.enrichment.sqlite_enrichment_store import SQLiteEnrichmentStore
from technodog.providers.flags.json_file_storage import JsonFileFlagStorage
from technodog.providers.knowledge.sqlite_knowledge_store import SQLiteKnowledgeStore
from technodog.providers.llm import build_llm_provider
from technodog.providers.search.duckduckgo_provider import DuckDuckGoSearchProvider
from technodog.services.enrichment.extraction import ExtractionService
from technodog.services.enrichment.research import ResearchService
from technodog.services.enrichment.synthesis import SynthesisService
from technodog.services.enrichment.verification import VerificationService
from technodog.services.feature_flags import FeatureFlagService
from technodog.services.ingestion.entity_extractor import KnowledgeEntityExtractor
from technodog.services.ingestion.ingestion_service import KnowledgeIngestionService
from technodog.services.knowledge_cache import KnowledgeCache
from technodog.utils.concurrency import RequestPacer
from technodog.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)

_SHUTDOWN_DRAIN_TIMEOUT = 10.0


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider | None:
    """Return the OpenAI(-compatible) embedder when a key is configured."""
    if app_settings.openai_api_key:
        provider = OpenAIEmbeddingProvider(settings=app_settings)
        if provider.is_available():
            return provider
    return None


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    The SQLite stores still need ``initialize()``; the lifespan does that.
    """
    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=30.0, follow_redirects=True)

    # -- Flags & cache --
    flags = FeatureFlagService(JsonFileFlagStorage(app_settings.feature_flags_path))
    cache_store = SQLiteCacheProvider(db_path=app_settings.database_path)
    knowledge_cache = KnowledgeCache(store=cache_store, flags=flags)

    # -- LLM / embeddings (either may be absent) --
    llm = build_llm_provider(app_settings)
    embedder = _build_embedding_provider(app_settings)

    # -- Knowledge ingestion --
    knowledge_store = SQLiteKnowledgeStore(db_path=app_settings.database_path)
    wikipedia = WikipediaProvider(api_url=app_settings.wikipedia_api_url, http_client=http_client)
    ingestion_service = KnowledgeIngestionService(
        store=knowledge_store,
        encyclopedia=wikipedia,
        extractor=KnowledgeEntityExtractor(llm) if llm is not None else None,
        embedder=embedder,
        cache=knowledge_cache,
    )

    # -- Enrichment pipeline --
    enrichment_store = SQLiteEnrichmentStore(db_path=app_settings.database_path)
    pacer = RequestPacer(
        min_interval=app_settings.research_request_interval,
        max_retries=app_settings.research_max_retries,
    )
    research_service = ResearchService(
        store=enrichment_store,
        search=DuckDuckGoSearchProvider(),
        scraper=WebScraperProvider(http_client=http_client),
        pacer=pacer,
    )
    extraction_service = ExtractionService(store=enrichment_store, llm=llm)
    verification_service = VerificationService(store=enrichment_store, llm=llm)
    synthesis_service = SynthesisService(
        store=enrichment_store, llm=llm, embedder=embedder, flags=flags
    )
    progress_tracker = ProgressTracker()
    orchestrator = EnrichmentOrchestrator(
        store=enrichment_store,
        research=research_service,
        extraction=extraction_service,
        verification=verification_service,
        synthesis=synthesis_service,
        progress_tracker=progress_tracker,
        flags=flags,
        stage_pause_seconds=app_settings.enrichment_stage_pause,
        queue_pause_seconds=app_settings.enrichment_queue_pause,
        max_attempts=app_settings.enrichment_max_attempts,
    )

    # -- Provider registry for /health --
    provider_registry: dict[str, bool] = {
        "llm": llm is not None,
        "embeddings": embedder is not None,
        "search": True,
        "article": True,
        "encyclopedia": True,
    }

    return {
        "http_client": http_client,
        "flags": flags,
        "cache_store": cache_store,
        "knowledge_cache": knowledge_cache,
        "knowledge_store": knowledge_store,
        "enrichment_store": enrichment_store,
        "ingestion_service": ingestion_service,
        "research_service": research_service,
        "extraction_service": extraction_service,
        "verification_service": verification_service,
        "synthesis_service": synthesis_service,
        "progress_tracker": progress_tracker,
        "orchestrator": orchestrator,
        "provider_registry": provider_registry,
        "primary_llm_name": llm.get_provider_name() if llm is not None else "none",
    }


async def initialize_stores(components: dict[str, Any]) -> None:
    """Create the SQLite tables behind every store (idempotent)."""
    # One database file backs all three stores; create schemas one at a time.
    for key in ("cache_store", "knowledge_store", "enrichment_store"):
        await components[key].initialize()


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    await initialize_stores(components)

    _logger.info(
        "app_startup",
        version="0.1.0",
        environment=settings.app_env,
        primary_llm=components["primary_llm_name"],
        flags=components["flags"].summary(),
    )

    yield

    # -- Shutdown: flush pending cache writes, close shared httpx client --
    knowledge_cache: KnowledgeCache = components["knowledge_cache"]
    await knowledge_cache.tasks.drain(timeout=_SHUTDOWN_DRAIN_TIMEOUT)
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="Cache writes drained, HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="techno.dog knowledge API",
        version="0.1.0",
        description=(
            "Query cache, feature flags, knowledge ingestion, and the multi-stage "
            "artist enrichment pipeline (research, claim extraction, verification, "
            "synthesis) behind techno.dog."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=config.get("app", {}).get("cors_origins"))

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "technodog.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "development",
    )
