"""Unit tests for the claim extraction stage."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from technodog.models.enrichment import ClaimType, VerificationStatus
from technodog.providers.enrichment.sqlite_enrichment_store import SQLiteEnrichmentStore
from technodog.services.enrichment.extraction import ExtractionService
from technodog.utils.errors import (
    ConfigurationError,
    ExtractionError,
    LLMError,
    NotFoundError,
)
from tests.conftest import ARTIST_ID, llm_json, make_raw_document, no_sleep

CLAIMS_PAYLOAD = {
    "artist_name_mentioned": "Jeff Mills",
    "claims": [
        {
            "claim_type": "birthplace",
            "claim_text": "Jeff Mills was born in Detroit.",
            "evidence_snippet": "from Detroit, Michigan",
            "confidence": 0.9,
        },
        {
            "claim_type": "label_founder",
            "claim_text": "Jeff Mills founded Axis Records in 1992.",
            "value_structured": {"label": "Axis Records", "year": 1992},
            "confidence": 7,
        },
        {"claim_type": "made_up_type", "claim_text": "He performs in a suit.", "confidence": "n/a"},
        {"claim_type": "bio_fact"},
        "not an object",
    ],
}


@pytest.fixture()
def service(seeded_store: SQLiteEnrichmentStore, mock_llm: MagicMock) -> ExtractionService:
    return ExtractionService(store=seeded_store, llm=mock_llm, sleep=no_sleep)


class TestExtractFromDocument:
    @pytest.mark.asyncio
    async def test_claims_are_stored_with_sources(
        self,
        service: ExtractionService,
        seeded_store: SQLiteEnrichmentStore,
        mock_llm: MagicMock,
    ) -> None:
        await seeded_store.insert_raw_document(make_raw_document("doc-1"))
        mock_llm.complete.return_value = llm_json(CLAIMS_PAYLOAD)

        extraction = await service.extract_from_document("doc-1", ARTIST_ID)

        assert extraction.claims_extracted == 3
        first, second, third = extraction.claims
        assert first.claim_type is ClaimType.BIRTHPLACE
        assert first.verification_status is VerificationStatus.UNVERIFIED
        assert first.extraction_model == "mock-model-1"
        assert second.confidence_score == 1.0
        assert second.value_structured == {"label": "Axis Records", "year": 1992}
        assert third.claim_type is ClaimType.BIO_FACT
        assert third.confidence_score == 0.5

        sources = await seeded_store.list_claim_sources(first.claim_id)
        assert len(sources) == 1
        assert sources[0].raw_doc_id == "doc-1"
        assert sources[0].quote_snippet == "from Detroit, Michigan"
        assert sources[0].domain == "discogs.com"

    @pytest.mark.asyncio
    async def test_prompt_names_the_artist(
        self, service: ExtractionService, seeded_store: SQLiteEnrichmentStore, mock_llm: MagicMock
    ) -> None:
        await seeded_store.insert_raw_document(make_raw_document("doc-1"))
        await service.extract_from_document("doc-1", ARTIST_ID)
        system_prompt = mock_llm.complete.call_args.kwargs["system_prompt"]
        assert system_prompt.endswith("ARTIST TO FOCUS ON: Jeff Mills")

    @pytest.mark.asyncio
    async def test_short_document_is_skipped(
        self, service: ExtractionService, seeded_store: SQLiteEnrichmentStore, mock_llm: MagicMock
    ) -> None:
        await seeded_store.insert_raw_document(make_raw_document("doc-short", content="Too short."))
        extraction = await service.extract_from_document("doc-short", ARTIST_ID)
        assert extraction.claims_extracted == 0
        mock_llm.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_document_raises(self, service: ExtractionService) -> None:
        with pytest.raises(NotFoundError):
            await service.extract_from_document("missing", ARTIST_ID)

    @pytest.mark.asyncio
    async def test_unparseable_response_raises_extraction_error(
        self, service: ExtractionService, seeded_store: SQLiteEnrichmentStore, mock_llm: MagicMock
    ) -> None:
        await seeded_store.insert_raw_document(make_raw_document("doc-1"))
        mock_llm.complete.return_value = "I'm sorry, I can't help with that."
        with pytest.raises(ExtractionError):
            await service.extract_from_document("doc-1", ARTIST_ID)

    @pytest.mark.asyncio
    async def test_llm_error_is_wrapped(
        self, service: ExtractionService, seeded_store: SQLiteEnrichmentStore, mock_llm: MagicMock
    ) -> None:
        await seeded_store.insert_raw_document(make_raw_document("doc-1"))
        mock_llm.complete.side_effect = LLMError(message="overloaded", provider_name="mock-llm")
        with pytest.raises(ExtractionError, match="overloaded"):
            await service.extract_from_document("doc-1", ARTIST_ID)

    @pytest.mark.asyncio
    async def test_no_llm_raises_configuration_error(self, seeded_store: SQLiteEnrichmentStore) -> None:
        service = ExtractionService(store=seeded_store, llm=None)
        with pytest.raises(ConfigurationError):
            await service.extract_from_document("doc-1", ARTIST_ID)


class TestExtractBatch:
    @pytest.mark.asyncio
    async def test_processes_unprocessed_documents_once(
        self, service: ExtractionService, seeded_store: SQLiteEnrichmentStore, mock_llm: MagicMock
    ) -> None:
        await seeded_store.insert_raw_document(make_raw_document("doc-1"))
        await seeded_store.insert_raw_document(
            make_raw_document("doc-2", url="https://en.wikipedia.org/wiki/Jeff_Mills")
        )
        mock_llm.complete.return_value = llm_json(CLAIMS_PAYLOAD)

        first = await service.extract_batch(ARTIST_ID)
        assert first.documents_processed == 2
        assert first.claims_extracted == 6
        assert first.errors == []

        # Documents with linked claims are no longer "unprocessed".
        second = await service.extract_batch(ARTIST_ID)
        assert second.documents_processed == 0

    @pytest.mark.asyncio
    async def test_per_document_errors_are_collected(
        self, service: ExtractionService, seeded_store: SQLiteEnrichmentStore, mock_llm: MagicMock
    ) -> None:
        await seeded_store.insert_raw_document(make_raw_document("doc-1"))
        mock_llm.complete.return_value = "garbage"
        result = await service.extract_batch(ARTIST_ID)
        assert result.documents_processed == 1
        assert result.claims_extracted == 0
        assert len(result.errors) == 1
        assert result.errors[0].startswith("https://www.discogs.com/artist/jeff-mills: ")

    @pytest.mark.asyncio
    async def test_batch_without_llm_raises(self, seeded_store: SQLiteEnrichmentStore) -> None:
        with pytest.raises(ConfigurationError):
            await ExtractionService(store=seeded_store, llm=None).extract_batch(ARTIST_ID)


class TestStatus:
    @pytest.mark.asyncio
    async def test_counts_by_status_and_type(
        self, service: ExtractionService, seeded_store: SQLiteEnrichmentStore, mock_llm: MagicMock
    ) -> None:
        await seeded_store.insert_raw_document(make_raw_document("doc-1"))
        mock_llm.complete.return_value = llm_json(CLAIMS_PAYLOAD)
        await service.extract_from_document("doc-1", ARTIST_ID)

        stats = await service.status(ARTIST_ID)
        assert stats.total_claims == 3
        assert stats.by_status == {"unverified": 3}
        assert stats.by_type == {"birthplace": 1, "label_founder": 1, "bio_fact": 1}
