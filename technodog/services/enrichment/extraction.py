"""Extraction stage: atomic claims from scraped artist documents.

Each raw document is sent (truncated) to the LLM together with the claim
taxonomy.  Every returned claim is stored as ``unverified`` and linked back
to the document it came from through an ``artist_sources`` row, so later
stages can show where a fact was read.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import uuid4

import structlog

from technodog.interfaces.enrichment_store import IEnrichmentStore
from technodog.interfaces.llm_provider import ILLMProvider
from technodog.models.enrichment import (
    Claim,
    ClaimSource,
    ClaimStats,
    ClaimType,
    DocumentExtraction,
    ExtractionStageResult,
    VerificationStatus,
)
from technodog.utils.errors import (
    ConfigurationError,
    ExtractionError,
    NotFoundError,
    TechnoDogError,
)
from technodog.utils.llm_json import parse_json_object

logger = structlog.get_logger(logger_name=__name__)

_MIN_DOCUMENT_CHARS = 100
_MAX_DOCUMENT_CHARS = 15000
_MAX_SNIPPET_CHARS = 500
_MAX_BATCH_DOCUMENTS = 5
_DEFAULT_SOURCE_QUALITY = 0.5

_EXTRACTION_PROMPT = (
    "You are an expert music journalist and researcher specializing in "
    "electronic music and techno.\n\n"
    "Your task is to extract factual claims about the artist from the provided "
    "document. Each claim should be:\n"
    "1. A single, atomic fact (not compound statements)\n"
    "2. Verifiable from the source text\n"
    "3. Relevant to the artist's career, music, or biography\n\n"
    "For each claim, provide:\n"
    "- claim_type: One of these categories: "
    + ", ".join(t.value for t in ClaimType)
    + "\n"
    "- claim_text: A clear, factual statement (1-2 sentences max)\n"
    "- value_structured: Structured data if applicable (dates as ISO strings, "
    "lists as arrays)\n"
    "- evidence_snippet: The exact quote or passage from the source supporting "
    "this claim (max 200 chars)\n"
    "- confidence: Your confidence level 0.0-1.0 based on source quality and clarity\n\n"
    "Do NOT include opinions, unverifiable claims, promotional language or "
    "speculation.\n\n"
    "Return a JSON object with:\n"
    '{"artist_name_mentioned": "string", "claims": [...]}'
)


def _clamp_confidence(value: Any) -> float:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return 0.5


class ExtractionService:
    """Turns raw documents into unverified, source-linked claims.

    Parameters
    ----------
    store:
        Enrichment persistence.
    llm:
        Claim extraction model; ``None`` makes every extraction call raise
        :class:`ConfigurationError`.
    pause_seconds:
        Delay between documents in :meth:`extract_batch`.
    sleep:
        Injectable sleep coroutine.
    """

    def __init__(
        self,
        store: IEnrichmentStore,
        llm: ILLMProvider | None,
        pause_seconds: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._llm = llm
        self._pause_seconds = pause_seconds
        self._sleep = sleep

    def _require_llm(self) -> ILLMProvider:
        if self._llm is None:
            raise ConfigurationError(
                "No LLM provider configured for claim extraction "
                "(set ANTHROPIC_API_KEY or OPENAI_API_KEY)"
            )
        return self._llm

    async def extract_from_document(self, raw_doc_id: str, artist_id: str) -> DocumentExtraction:
        """Extract and store claims from one raw document.

        Raises
        ------
        ConfigurationError
            If no LLM provider is configured.
        NotFoundError
            If *raw_doc_id* does not exist.
        ExtractionError
            If the LLM call fails or returns no parseable JSON.
        """
        llm = self._require_llm()

        document = await self._store.get_raw_document(raw_doc_id)
        if document is None:
            raise NotFoundError(f"Document not found: {raw_doc_id}")

        artist = await self._store.get_artist(artist_id)
        artist_name = artist.canonical_name if artist else "Unknown Artist"
        content = document.content_markdown or document.content_text or ""

        if len(content) < _MIN_DOCUMENT_CHARS:
            logger.info("document_too_short", raw_doc_id=raw_doc_id, length=len(content))
            return DocumentExtraction(raw_doc_id=raw_doc_id)

        try:
            response = await llm.complete(
                system_prompt=f"{_EXTRACTION_PROMPT}\n\nARTIST TO FOCUS ON: {artist_name}",
                user_prompt=f"DOCUMENT CONTENT:\n{content[:_MAX_DOCUMENT_CHARS]}",
                temperature=0.1,
                json_output=True,
            )
            parsed = parse_json_object(response)
        except (json.JSONDecodeError, ValueError) as exc:
            raise ExtractionError(
                f"Failed to extract JSON from LLM response: {exc}",
                provider_name=llm.get_provider_name(),
            ) from exc
        except TechnoDogError as exc:
            raise ExtractionError(exc.message, provider_name=exc.provider_name) from exc

        stored: list[Claim] = []
        model_name = llm.get_model_name()
        for item in parsed.get("claims") or []:
            if not isinstance(item, dict) or not item.get("claim_text"):
                continue
            value_structured = item.get("value_structured")
            claim = Claim(
                claim_id=str(uuid4()),
                artist_id=artist_id,
                claim_type=ClaimType.coerce(item.get("claim_type")),
                claim_text=str(item["claim_text"]),
                value_structured=value_structured if isinstance(value_structured, dict) else None,
                confidence_score=_clamp_confidence(item.get("confidence", 0.5)),
                verification_status=VerificationStatus.UNVERIFIED,
                extraction_model=model_name,
            )
            try:
                await self._store.insert_claim(claim)
            except TechnoDogError as exc:
                logger.warning("claim_insert_failed", error=str(exc))
                continue

            await self._store.insert_claim_source(
                ClaimSource(
                    source_id=str(uuid4()),
                    claim_id=claim.claim_id,
                    raw_doc_id=raw_doc_id,
                    url=document.url,
                    domain=document.domain,
                    quote_snippet=str(item.get("evidence_snippet") or "")[:_MAX_SNIPPET_CHARS],
                    source_quality_score=_DEFAULT_SOURCE_QUALITY,
                )
            )
            stored.append(claim)

        logger.info(
            "claims_extracted",
            raw_doc_id=raw_doc_id,
            artist_id=artist_id,
            claims=len(stored),
        )
        return DocumentExtraction(
            raw_doc_id=raw_doc_id, claims_extracted=len(stored), claims=stored
        )

    async def extract_batch(self, artist_id: str, limit: int = 10) -> ExtractionStageResult:
        """Extract claims from up to five unprocessed documents of *artist_id*."""
        self._require_llm()
        documents = await self._store.list_unprocessed_raw_documents(artist_id, limit)

        processed = 0
        total_claims = 0
        errors: list[str] = []
        for index, document in enumerate(documents[:_MAX_BATCH_DOCUMENTS]):
            if index:
                await self._sleep(self._pause_seconds)
            processed += 1
            try:
                extraction = await self.extract_from_document(document.raw_doc_id, artist_id)
            except ConfigurationError:
                raise
            except TechnoDogError as exc:
                logger.warning(
                    "document_extraction_failed",
                    raw_doc_id=document.raw_doc_id,
                    error=str(exc),
                )
                errors.append(f"{document.url}: {exc.message}")
                continue
            total_claims += extraction.claims_extracted

        logger.info(
            "extraction_stage_complete",
            artist_id=artist_id,
            documents=processed,
            claims=total_claims,
            errors=len(errors),
        )
        return ExtractionStageResult(
            documents_processed=processed,
            claims_extracted=total_claims,
            errors=errors,
        )

    async def status(self, artist_id: str) -> ClaimStats:
        by_status = {
            k: v for k, v in (await self._store.count_claims_by_status(artist_id)).items() if v
        }
        by_type = await self._store.count_claims_by_type(artist_id)
        return ClaimStats(
            total_claims=sum(by_type.values()),
            by_status=by_status,
            by_type=by_type,
        )
