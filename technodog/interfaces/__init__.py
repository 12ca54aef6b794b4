"""Public interface definitions for all external services and stores.

Every external API and every table is reached through the abstract base
classes in this package.  Concrete adapters live in
``technodog/providers/`` and are wired together in ``technodog/main.py``.

CONCRETE PROVIDER MAP:
    Interface              →  Concrete implementations
    ─────────────────────────────────────────────────────────────
    IFlagStorage           →  JsonFileFlagStorage, MemoryFlagStorage
    ICacheProvider         →  SQLiteCacheProvider, MemoryCacheProvider
    ILLMProvider           →  AnthropicLLMProvider, OpenAILLMProvider
    IEmbeddingProvider     →  OpenAIEmbeddingProvider
    IWebSearchProvider     →  DuckDuckGoSearchProvider
    IArticleProvider       →  WebScraperProvider
    IEncyclopediaProvider  →  WikipediaProvider
    IKnowledgeStore        →  SQLiteKnowledgeStore
    IEnrichmentStore       →  SQLiteEnrichmentStore
"""

from technodog.interfaces.article_provider import (
    ArticleContent,
    IArticleProvider,
    IEncyclopediaProvider,
)
from technodog.interfaces.cache_provider import ICacheProvider
from technodog.interfaces.embedding_provider import IEmbeddingProvider
from technodog.interfaces.enrichment_store import IEnrichmentStore
from technodog.interfaces.flag_storage import IFlagStorage
from technodog.interfaces.knowledge_store import IKnowledgeStore
from technodog.interfaces.llm_provider import ILLMProvider
from technodog.interfaces.web_search_provider import IWebSearchProvider, SearchResult

__all__ = [
    "ArticleContent",
    "IArticleProvider",
    "ICacheProvider",
    "IEmbeddingProvider",
    "IEncyclopediaProvider",
    "IEnrichmentStore",
    "IFlagStorage",
    "IKnowledgeStore",
    "ILLMProvider",
    "IWebSearchProvider",
    "SearchResult",
]
