"""Unit tests for KnowledgeIngestionService and KnowledgeEntityExtractor."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from technodog.interfaces.article_provider import IEncyclopediaProvider
from technodog.interfaces.knowledge_store import IKnowledgeStore
from technodog.models.knowledge import (
    EntityType,
    KnowledgeDocument,
    KnowledgeEntity,
    KnowledgeSource,
    SourceType,
    WikipediaArticle,
)
from technodog.providers.cache.memory_cache import MemoryCacheProvider
from technodog.providers.knowledge.sqlite_knowledge_store import SQLiteKnowledgeStore
from technodog.services.feature_flags import FeatureFlagService
from technodog.services.ingestion.entity_extractor import (
    KnowledgeEntityExtractor,
    merge_duplicate_entities,
)
from technodog.services.ingestion.ingestion_service import (
    SUGGESTED_TOPICS,
    KnowledgeIngestionService,
)
from technodog.services.knowledge_cache import KnowledgeCache
from technodog.utils.errors import EmbeddingError, LLMError, StorageError
from technodog.utils.llm_json import parse_json_object
from tests.conftest import llm_json

ARTICLE_TEXT = ("Jeff Mills is a Detroit techno pioneer. " * 80).strip()


@pytest_asyncio.fixture()
async def knowledge_store(db_path: Path) -> SQLiteKnowledgeStore:
    store = SQLiteKnowledgeStore(db_path=db_path)
    await store.initialize()
    return store


@pytest.fixture()
def encyclopedia() -> MagicMock:
    provider = MagicMock(spec=IEncyclopediaProvider)

    async def _fetch(query: str) -> WikipediaArticle | None:
        if query == "Jeff Mills":
            return WikipediaArticle(
                title="Jeff Mills",
                content=ARTICLE_TEXT,
                url="https://en.wikipedia.org/wiki/Jeff_Mills",
            )
        return None

    provider.fetch_article = AsyncMock(side_effect=_fetch)
    provider.get_provider_name.return_value = "mock-wikipedia"
    return provider


ENTITY_PAYLOAD = {
    "entities": [
        {"name": "Jeff Mills", "type": "artist", "city": "Detroit", "aliases": "The Wizard"},
        {"name": "Axis Records", "type": "Record Label"},
        {"name": "Some Thing", "type": "spaceship"},
        {"type": "artist"},
    ],
    "facts": ["Founded Axis Records in 1992", ""],
    "relationships": [
        {"from": "Jeff Mills", "to": "Axis Records", "type": "founded"},
        {"from": "Jeff Mills"},
    ],
}


# ======================================================================
# parse_json_object
# ======================================================================


class TestParseJsonObject:
    def test_plain_object(self) -> None:
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_object(self) -> None:
        assert parse_json_object(llm_json({"a": 1})) == {"a": 1}

    def test_object_with_surrounding_prose(self) -> None:
        assert parse_json_object('Sure! Here it is: {"a": [1, 2]} Hope that helps.') == {"a": [1, 2]}

    def test_array_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            parse_json_object("[1, 2, 3]")

    def test_garbage_raises_decode_error(self) -> None:
        with pytest.raises(json.JSONDecodeError):
            parse_json_object("no json here")


# ======================================================================
# Entity extractor
# ======================================================================


class TestEntityExtractor:
    @pytest.mark.asyncio
    async def test_parses_and_coerces(self, mock_llm: MagicMock) -> None:
        mock_llm.complete.return_value = llm_json(ENTITY_PAYLOAD)
        result = await KnowledgeEntityExtractor(mock_llm).extract(ARTICLE_TEXT)

        names = [e.name for e in result.entities]
        assert names == ["Jeff Mills", "Axis Records", "Some Thing"]
        assert result.entities[0].aliases == ["The Wizard"]
        assert result.entities[1].type is EntityType.RECORD_LABEL
        assert result.entities[2].type is EntityType.OTHER
        assert result.facts == ["Founded Axis Records in 1992"]
        assert len(result.relationships) == 1
        assert result.relationships[0].source == "Jeff Mills"
        assert result.relationships[0].target == "Axis Records"

    @pytest.mark.asyncio
    async def test_llm_failure_yields_empty_result(self, mock_llm: MagicMock) -> None:
        mock_llm.complete.side_effect = LLMError(message="boom", provider_name="mock-llm")
        result = await KnowledgeEntityExtractor(mock_llm).extract(ARTICLE_TEXT)
        assert result.entities == []
        assert result.facts == []

    @pytest.mark.asyncio
    async def test_unparseable_response_yields_empty_result(self, mock_llm: MagicMock) -> None:
        mock_llm.complete.return_value = "I could not find anything."
        result = await KnowledgeEntityExtractor(mock_llm).extract(ARTICLE_TEXT)
        assert result.relationships == []

    @pytest.mark.asyncio
    async def test_content_is_truncated_in_prompt(self, mock_llm: MagicMock) -> None:
        await KnowledgeEntityExtractor(mock_llm).extract("q" * 20_000)
        prompt = mock_llm.complete.call_args.kwargs["user_prompt"]
        assert prompt.count("q") == 8000


class TestMergeDuplicateEntities:
    def test_dj_prefix_folds_into_first_occurrence(self) -> None:
        merged = merge_duplicate_entities(
            [
                KnowledgeEntity(name="Rush", type=EntityType.ARTIST),
                KnowledgeEntity(name="DJ Rush", type=EntityType.ARTIST, city="Chicago"),
            ]
        )
        assert len(merged) == 1
        assert merged[0].name == "Rush"
        assert merged[0].aliases == ["DJ Rush"]
        assert merged[0].city == "Chicago"

    def test_alias_match_keeps_alias_list(self) -> None:
        merged = merge_duplicate_entities(
            [
                KnowledgeEntity(name="Jeff Mills", type=EntityType.ARTIST, aliases=["The Wizard"]),
                KnowledgeEntity(name="The Wizard", type=EntityType.ARTIST),
            ]
        )
        assert [e.name for e in merged] == ["Jeff Mills"]
        assert merged[0].aliases == ["The Wizard"]

    def test_different_types_or_names_stay_apart(self) -> None:
        entities = [
            KnowledgeEntity(name="Tresor", type=EntityType.CLUB),
            KnowledgeEntity(name="Tresor", type=EntityType.RECORD_LABEL),
            KnowledgeEntity(name="Robert Hood", type=EntityType.ARTIST),
            KnowledgeEntity(name="Robert Armani", type=EntityType.ARTIST),
        ]
        assert merge_duplicate_entities(entities) == entities


# ======================================================================
# Ingestion
# ======================================================================


class TestIngest:
    @pytest.mark.asyncio
    async def test_wikipedia_source_is_chunked_and_stored(
        self, knowledge_store: SQLiteKnowledgeStore, encyclopedia: MagicMock
    ) -> None:
        service = KnowledgeIngestionService(store=knowledge_store, encyclopedia=encyclopedia)
        result = await service.ingest([KnowledgeSource(type=SourceType.WIKIPEDIA, query="Jeff Mills")])

        # 3199 characters: windows start at 0, 1300 and 2600.
        assert len(ARTICLE_TEXT) == 3199
        assert result.documents_created == 3
        assert result.errors == []
        titles = await knowledge_store.list_document_titles()
        assert titles == ["Jeff Mills (1/3)", "Jeff Mills (2/3)", "Jeff Mills (3/3)"]

    @pytest.mark.asyncio
    async def test_single_chunk_keeps_plain_title(
        self, knowledge_store: SQLiteKnowledgeStore, encyclopedia: MagicMock
    ) -> None:
        service = KnowledgeIngestionService(store=knowledge_store, encyclopedia=encyclopedia)
        source = KnowledgeSource(
            type=SourceType.MANUAL, content="Short note on Tresor.", title="Tresor note"
        )
        result = await service.ingest([source])
        assert result.documents_created == 1
        assert await knowledge_store.list_document_titles() == ["Tresor note"]
        docs = await knowledge_store.search_documents("tresor")
        assert docs[0].source == "manual"
        assert docs[0].metadata["total_chunks"] == 1

    @pytest.mark.asyncio
    async def test_errors_are_per_source(
        self, knowledge_store: SQLiteKnowledgeStore, encyclopedia: MagicMock
    ) -> None:
        service = KnowledgeIngestionService(store=knowledge_store, encyclopedia=encyclopedia)
        result = await service.ingest(
            [
                KnowledgeSource(type=SourceType.WIKIPEDIA, query="Nonexistent Artist"),
                KnowledgeSource(type=SourceType.MANUAL, content="text only"),
                KnowledgeSource(type=SourceType.MANUAL, content="Body", title="Valid"),
            ]
        )
        assert result.errors == [
            'Wikipedia: No results for "Nonexistent Artist"',
            "Missing content or title for source",
        ]
        assert result.documents_created == 1

    @pytest.mark.asyncio
    async def test_entities_and_embeddings(
        self,
        knowledge_store: SQLiteKnowledgeStore,
        encyclopedia: MagicMock,
        mock_llm: MagicMock,
        mock_embedder: MagicMock,
    ) -> None:
        mock_llm.complete.return_value = llm_json(ENTITY_PAYLOAD)
        service = KnowledgeIngestionService(
            store=knowledge_store,
            encyclopedia=encyclopedia,
            extractor=KnowledgeEntityExtractor(mock_llm),
            embedder=mock_embedder,
        )
        source = KnowledgeSource(type=SourceType.WIKIPEDIA, query="Jeff Mills")

        first = await service.ingest([source])
        assert first.entities_created == 3
        assert first.embeddings_generated == 3
        assert await knowledge_store.count_documents_with_embeddings() == 3

        # Same (name, type) pairs are not inserted twice.
        second = await service.ingest([source])
        assert second.entities_created == 0
        assert await knowledge_store.count_entities() == 3

    @pytest.mark.asyncio
    async def test_flags_skip_entities_and_embeddings(
        self,
        knowledge_store: SQLiteKnowledgeStore,
        encyclopedia: MagicMock,
        mock_llm: MagicMock,
        mock_embedder: MagicMock,
    ) -> None:
        service = KnowledgeIngestionService(
            store=knowledge_store,
            encyclopedia=encyclopedia,
            extractor=KnowledgeEntityExtractor(mock_llm),
            embedder=mock_embedder,
        )
        result = await service.ingest(
            [KnowledgeSource(type=SourceType.WIKIPEDIA, query="Jeff Mills")],
            extract_entities=False,
            generate_embeddings=False,
        )
        assert result.entities_created == 0
        assert result.embeddings_generated == 0
        mock_llm.complete.assert_not_awaited()
        mock_embedder.embed_single.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_embedding_failure_stores_chunk_without_vector(
        self, knowledge_store: SQLiteKnowledgeStore, encyclopedia: MagicMock, mock_embedder: MagicMock
    ) -> None:
        mock_embedder.embed_single.side_effect = EmbeddingError(message="quota")
        service = KnowledgeIngestionService(
            store=knowledge_store, encyclopedia=encyclopedia, embedder=mock_embedder
        )
        result = await service.ingest([KnowledgeSource(type=SourceType.WIKIPEDIA, query="Jeff Mills")])
        assert result.documents_created == 3
        assert result.embeddings_generated == 0

    @pytest.mark.asyncio
    async def test_failed_insert_skips_chunk(self, encyclopedia: MagicMock) -> None:
        store = MagicMock(spec=IKnowledgeStore)
        store.insert_document = AsyncMock(side_effect=[1, StorageError(message="locked"), 3])
        service = KnowledgeIngestionService(store=store, encyclopedia=encyclopedia)
        result = await service.ingest([KnowledgeSource(type=SourceType.WIKIPEDIA, query="Jeff Mills")])
        assert result.documents_created == 2
        assert result.errors == []

    def test_result_serialises_camel_case(self) -> None:
        from technodog.models.knowledge import KnowledgeIngestionResult

        dumped = KnowledgeIngestionResult(documents_created=2).model_dump(by_alias=True)
        assert dumped["documentsCreated"] == 2
        assert "embeddingsGenerated" in dumped


class TestTopicsStatsSearch:
    @pytest.mark.asyncio
    async def test_suggest_topics_excludes_ingested(
        self, knowledge_store: SQLiteKnowledgeStore, encyclopedia: MagicMock
    ) -> None:
        service = KnowledgeIngestionService(store=knowledge_store, encyclopedia=encyclopedia)
        before = await service.suggest_topics()
        assert before.already_ingested == 0
        assert len(before.topics) == len(SUGGESTED_TOPICS)

        await service.ingest([KnowledgeSource(type=SourceType.WIKIPEDIA, query="Jeff Mills")])
        after = await service.suggest_topics()
        assert after.already_ingested == 1
        assert "Jeff Mills" not in [t.query for t in after.topics]

    @pytest.mark.asyncio
    async def test_stats(self, knowledge_store: SQLiteKnowledgeStore, encyclopedia: MagicMock) -> None:
        service = KnowledgeIngestionService(store=knowledge_store, encyclopedia=encyclopedia)
        await service.ingest([KnowledgeSource(type=SourceType.MANUAL, content="Body", title="T")])
        stats = await service.stats()
        assert stats.documents == 1
        assert stats.entities == 0
        assert stats.documents_with_embeddings == 0

    @pytest.mark.asyncio
    async def test_search_without_cache(
        self, knowledge_store: SQLiteKnowledgeStore, encyclopedia: MagicMock
    ) -> None:
        await knowledge_store.insert_document(
            KnowledgeDocument(title="Berghain", content="Berlin club", source="manual")
        )
        service = KnowledgeIngestionService(store=knowledge_store, encyclopedia=encyclopedia)
        lookup = await service.search("BERLIN")
        assert lookup.from_cache is False
        assert [d["title"] for d in lookup.data] == ["Berghain"]
        assert "embedding" not in lookup.data[0]

    @pytest.mark.asyncio
    async def test_search_reads_through_cache(
        self,
        knowledge_store: SQLiteKnowledgeStore,
        encyclopedia: MagicMock,
        flags: FeatureFlagService,
    ) -> None:
        flags.set("knowledge_cache_enabled", True)
        cache = KnowledgeCache(store=MemoryCacheProvider(), flags=flags)
        await knowledge_store.insert_document(
            KnowledgeDocument(title="Berghain", content="Berlin club", source="manual")
        )
        service = KnowledgeIngestionService(
            store=knowledge_store, encyclopedia=encyclopedia, cache=cache
        )

        first = await service.search("berlin", limit=5)
        await cache.tasks.drain()
        second = await service.search("berlin", limit=5)
        other_limit = await service.search("berlin", limit=6)

        assert first.from_cache is False
        assert second.from_cache is True
        assert second.data == first.data
        assert other_limit.from_cache is False
