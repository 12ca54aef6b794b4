"""Pydantic request/response schemas for the techno.dog knowledge API.

# ─── HOW SCHEMAS WORK (Junior Developer Guide) ────────────────────────
#
# Every action endpoint takes one request body with an ``action`` field
# plus the parameters that action needs.  FastAPI validates the shape;
# the route checks that the chosen action got the parameters it requires
# and answers 400 otherwise.
#
# Responses are plain dicts built from the domain models, wrapped as
# ``{"success": true, ...}``.  Errors use :class:`ErrorResponse`.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from technodog.models.facts import FactCandidate
from technodog.models.knowledge import KnowledgeSource


class ErrorResponse(BaseModel):
    """Standard error response body."""

    success: bool = False
    error: str
    detail: str | None = None


class HealthResponse(BaseModel):
    status: str
    version: str
    providers: dict[str, Any]


# ---------------------------------------------------------------------------
# Flags / cache
# ---------------------------------------------------------------------------


class FlagsResponse(BaseModel):
    """Current flag values keyed by storage name (``KNOWLEDGE_CACHE_ENABLED``...)."""

    flags: dict[str, bool]


class CacheStatsResponse(BaseModel):
    hits: int
    misses: int
    hit_rate: float
    entries: int
    pending_writes: int


class CacheInvalidateRequest(BaseModel):
    query_text: str = Field(..., min_length=1)
    cache_type: str | None = None
    filters: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Action endpoints
# ---------------------------------------------------------------------------


class IngestRequest(BaseModel):
    """Body of ``POST /knowledge-ingest``; accepts camelCase keys too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    action: str
    sources: list[KnowledgeSource] = Field(default_factory=list)
    extract_entities: bool = True
    generate_embeddings: bool = True


class EnrichmentRequest(BaseModel):
    action: str
    artist_id: str | None = None
    priority: int = 0
    reason: str | None = None
    limit: int = Field(default=5, ge=1, le=100)
    objectives: list[str] | None = None


class ResearchRequest(BaseModel):
    action: str
    query: str | None = None
    urls: list[str] = Field(default_factory=list)
    artist_id: str | None = None
    artist_name: str | None = None
    aliases: list[str] = Field(default_factory=list)
    objectives: list[str] | None = None
    limit: int = Field(default=20, ge=1, le=100)


class ExtractionRequest(BaseModel):
    action: str
    artist_id: str | None = None
    raw_doc_id: str | None = None
    limit: int = Field(default=10, ge=1, le=100)


class VerificationRequest(BaseModel):
    action: str
    artist_id: str | None = None
    claim_id: str | None = None
    limit: int = Field(default=10, ge=1, le=100)


class SynthesisRequest(BaseModel):
    action: str
    artist_id: str | None = None
    include_partial: bool = True
    force_regenerate: bool = False
    limit: int = Field(default=50, ge=1, le=500)


class FactValidationRequest(BaseModel):
    facts: list[FactCandidate] = Field(default_factory=list)
