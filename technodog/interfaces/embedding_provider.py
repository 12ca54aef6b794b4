"""Abstract base class for text-embedding service providers.

Embeddings are stored next to document chunks (knowledge ingestion and
synthesised artist profiles) for vector retrieval by the website.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAIEmbeddingProvider (technodog/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Raises
        ------
        technodog.utils.errors.EmbeddingError
            If the embeddings API call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate the embedding vector for one text."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the vector length this provider produces."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured."""
