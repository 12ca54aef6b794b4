"""Knowledge cache row stores.

SQLiteCacheProvider persists the ``kl_cached_search`` table and is what the
API server and CLI use.  MemoryCacheProvider keeps rows in process memory
for tests; both are driven by the same KnowledgeCache service.
"""

from technodog.providers.cache.memory_cache import MemoryCacheProvider
from technodog.providers.cache.sqlite_cache import SQLiteCacheProvider

__all__ = ["MemoryCacheProvider", "SQLiteCacheProvider"]
