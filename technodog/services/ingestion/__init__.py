"""Knowledge ingestion: Wikipedia and manual sources into retrieval documents.

Flow: IEncyclopediaProvider -> KnowledgeEntityExtractor -> TextChunker ->
IEmbeddingProvider -> IKnowledgeStore, coordinated by
KnowledgeIngestionService.
"""

from technodog.services.ingestion.chunker import TextChunker
from technodog.services.ingestion.entity_extractor import KnowledgeEntityExtractor
from technodog.services.ingestion.ingestion_service import (
    SUGGESTED_TOPICS,
    KnowledgeIngestionService,
)

__all__ = [
    "SUGGESTED_TOPICS",
    "KnowledgeEntityExtractor",
    "KnowledgeIngestionService",
    "TextChunker",
]
