"""Knowledge ingestion: reference articles into retrieval documents.

Pipeline per source: **fetch -> extract entities -> chunk -> embed -> store**.

The :class:`KnowledgeIngestionService` coordinates its collaborators
(encyclopedia provider, entity extractor, chunker, embedding provider,
knowledge store) without any of them knowing about each other.  Failures
are contained per source and per chunk: a source that cannot be fetched
adds an error string and the batch moves on; a chunk that cannot be
stored is skipped.
"""

from __future__ import annotations

from typing import Any

import structlog

from technodog.interfaces.article_provider import IEncyclopediaProvider
from technodog.interfaces.embedding_provider import IEmbeddingProvider
from technodog.interfaces.knowledge_store import IKnowledgeStore
from technodog.models.cache import CacheLookup, CacheType
from technodog.models.knowledge import (
    KnowledgeDocument,
    KnowledgeIngestionResult,
    KnowledgeSource,
    KnowledgeStats,
    SourceType,
    SuggestedTopic,
    TopicSuggestions,
)
from technodog.services.ingestion.chunker import TextChunker
from technodog.services.ingestion.entity_extractor import KnowledgeEntityExtractor
from technodog.services.knowledge_cache import KnowledgeCache
from technodog.utils.errors import TechnoDogError
from technodog.utils.timestamps import utcnow

logger = structlog.get_logger(logger_name=__name__)

# Curated Wikipedia topics offered by ``suggest_topics``.
SUGGESTED_TOPICS: tuple[str, ...] = (
    # Detroit
    "Detroit techno",
    "Belleville Three",
    "Juan Atkins",
    "Derrick May (musician)",
    "Kevin Saunderson",
    "Underground Resistance",
    "Jeff Mills",
    "Robert Hood",
    # Berlin
    "Berlin techno",
    "Tresor (club)",
    "Berghain",
    "Love Parade",
    # Labels
    "Warp Records",
    "R&S Records",
    "Planet E Communications",
    "Ostgut Ton",
    # Subgenres
    "Minimal techno",
    "Industrial techno",
    "Acid techno",
    "Dub techno",
    # Culture
    "Techno music",
    "Rave",
    "Electronic dance music",
    # Gear
    "Roland TR-909",
    "Roland TB-303",
    "Roland TR-808",
)


class KnowledgeIngestionService:
    """Ingests knowledge sources into the document and entity tables.

    Parameters
    ----------
    store:
        Knowledge document/entity persistence.
    encyclopedia:
        Wikipedia lookup for ``wikipedia`` sources.
    extractor:
        Entity extractor; ``None`` when no LLM is configured, in which case
        entity extraction is skipped even if requested.
    embedder:
        Embedding provider; ``None`` disables embeddings.
    chunker:
        Sliding-window chunker (1500/200 by default).
    cache:
        Knowledge cache used by :meth:`search`; ``None`` queries the store
        directly.
    """

    def __init__(
        self,
        store: IKnowledgeStore,
        encyclopedia: IEncyclopediaProvider,
        extractor: KnowledgeEntityExtractor | None = None,
        embedder: IEmbeddingProvider | None = None,
        chunker: TextChunker | None = None,
        cache: KnowledgeCache | None = None,
    ) -> None:
        self._store = store
        self._encyclopedia = encyclopedia
        self._extractor = extractor
        self._embedder = embedder
        self._chunker = chunker or TextChunker(chunk_size=1500, overlap=200)
        self._cache = cache

    # ------------------------------------------------------------------
    # Ingest
    # ------------------------------------------------------------------

    async def ingest(
        self,
        sources: list[KnowledgeSource],
        extract_entities: bool = True,
        generate_embeddings: bool = True,
    ) -> KnowledgeIngestionResult:
        """Ingest *sources* one after another and report counts and errors."""
        result = KnowledgeIngestionResult()

        for source in sources:
            content = source.content
            title = source.title
            source_url = source.url

            if source.type == SourceType.WIKIPEDIA and source.query:
                logger.info("wikipedia_fetch", query=source.query)
                article = await self._encyclopedia.fetch_article(source.query)
                if article is None:
                    result.errors.append(f'Wikipedia: No results for "{source.query}"')
                    continue
                content, title, source_url = article.content, article.title, article.url

            if not content or not title:
                result.errors.append("Missing content or title for source")
                continue

            logger.info("ingest_source_start", title=title, length=len(content))

            if extract_entities and self._extractor is not None:
                result.entities_created += await self._store_entities(content, source_url)

            chunks = self._chunker.window(content)
            for index, chunk in enumerate(chunks):
                embedding = None
                if generate_embeddings and self._embedder is not None:
                    embedding = await self._embed(chunk)
                    if embedding is not None:
                        result.embeddings_generated += 1

                document = KnowledgeDocument(
                    title=f"{title} ({index + 1}/{len(chunks)})" if len(chunks) > 1 else title,
                    content=chunk,
                    source=source_url or source.type.value,
                    embedding=embedding,
                    metadata={
                        "source_type": source.type.value,
                        "original_title": title,
                        "chunk_index": index,
                        "total_chunks": len(chunks),
                        "ingested_at": utcnow().isoformat(),
                    },
                    chunk_index=index,
                )
                try:
                    await self._store.insert_document(document)
                except TechnoDogError as exc:
                    logger.warning("document_insert_failed", title=document.title, error=str(exc))
                    continue
                result.documents_created += 1

            logger.info("ingest_source_complete", title=title, chunks=len(chunks))

        logger.info(
            "ingest_batch_complete",
            documents=result.documents_created,
            entities=result.entities_created,
            embeddings=result.embeddings_generated,
            errors=len(result.errors),
        )
        return result

    async def _store_entities(self, content: str, source_url: str | None) -> int:
        assert self._extractor is not None
        extraction = await self._extractor.extract(content)
        created = 0
        for entity in extraction.entities:
            try:
                if await self._store.entity_exists(entity.name, entity.type.value):
                    continue
                await self._store.insert_entity(entity, [source_url] if source_url else [])
            except TechnoDogError as exc:
                logger.warning("entity_insert_failed", name=entity.name, error=str(exc))
                continue
            created += 1
            logger.debug("entity_created", name=entity.name, type=entity.type.value)
        return created

    async def _embed(self, text: str) -> list[float] | None:
        assert self._embedder is not None
        try:
            return await self._embedder.embed_single(text)
        except TechnoDogError as exc:
            logger.warning("embedding_failed", error=str(exc))
            return None

    # ------------------------------------------------------------------
    # Topics / stats / search
    # ------------------------------------------------------------------

    async def suggest_topics(self) -> TopicSuggestions:
        """Return curated topics whose title has not been ingested yet."""
        titles = await self._store.list_document_titles()
        existing = {t.lower().split(" (")[0] for t in titles if t}
        remaining = [
            SuggestedTopic(query=topic) for topic in SUGGESTED_TOPICS
            if topic.lower() not in existing
        ]
        return TopicSuggestions(
            topics=remaining,
            already_ingested=len(SUGGESTED_TOPICS) - len(remaining),
        )

    async def stats(self) -> KnowledgeStats:
        return KnowledgeStats(
            documents=await self._store.count_documents(),
            entities=await self._store.count_entities(),
            documents_with_embeddings=await self._store.count_documents_with_embeddings(),
        )

    async def search(self, query: str, limit: int = 10) -> CacheLookup:
        """Substring search over stored documents, read through the cache."""

        async def _fetch() -> list[dict[str, Any]]:
            documents = await self._store.search_documents(query, limit)
            return [
                doc.model_dump(mode="json", exclude={"embedding"}) for doc in documents
            ]

        if self._cache is None:
            return CacheLookup(data=await _fetch(), from_cache=False)
        return await self._cache.with_cache(query, CacheType.SEARCH, _fetch, {"limit": limit})
