"""Abstract base class for the knowledge document/entity store.

Backs the shared ``documents`` table (retrieval chunks) and the
``td_knowledge_entities`` table populated by knowledge ingestion.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from technodog.models.knowledge import KnowledgeDocument, KnowledgeEntity


class IKnowledgeStore(ABC):
    """Contract for knowledge ingestion persistence."""

    async def initialize(self) -> None:  # noqa: B027
        """Create backing tables if needed.  Default is a no-op."""

    @abstractmethod
    async def entity_exists(self, name: str, entity_type: str) -> bool:
        """Return ``True`` if an entity with this exact (name, type) exists."""

    @abstractmethod
    async def insert_entity(self, entity: KnowledgeEntity, source_urls: list[str]) -> None:
        """Insert a new entity row.

        Raises
        ------
        technodog.utils.errors.StorageError
            If the insert fails (including a (name, type) collision).
        """

    @abstractmethod
    async def insert_document(self, document: KnowledgeDocument) -> int:
        """Insert a document chunk and return its row id.

        Raises
        ------
        technodog.utils.errors.StorageError
            If the insert fails.
        """

    @abstractmethod
    async def list_document_titles(self) -> list[str]:
        """Return every stored document title."""

    @abstractmethod
    async def search_documents(self, query: str, limit: int = 10) -> list[KnowledgeDocument]:
        """Case-insensitive substring search over title and content."""

    @abstractmethod
    async def count_documents(self) -> int: ...

    @abstractmethod
    async def count_entities(self) -> int: ...

    @abstractmethod
    async def count_documents_with_embeddings(self) -> int: ...
