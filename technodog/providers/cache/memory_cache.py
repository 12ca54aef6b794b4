"""In-memory cache row store using cachetools.LRUCache.

Fast, not shared across processes.  Used by tests and by the CLI when no
database path is configured.  Expiry is evaluated against the ``now``
argument on every read, exactly like the SQLite store, so a clock can be
injected in tests.
"""

from __future__ import annotations

from datetime import datetime

import structlog
from cachetools import LRUCache

from technodog.interfaces.cache_provider import ICacheProvider
from technodog.models.cache import CacheEntry, CacheType

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """Dict-style :class:`ICacheProvider` bounded by ``max_size`` rows.

    Parameters
    ----------
    max_size:
        Maximum number of rows before the least-recently-used one is evicted.
    """

    def __init__(self, max_size: int = 10_000) -> None:
        self._rows: LRUCache[str, CacheEntry] = LRUCache(maxsize=max_size)

    async def find_live(
        self,
        query_hash: str,
        cache_type: CacheType,
        now: datetime,
    ) -> CacheEntry | None:
        entry = self._rows.get(query_hash)
        if entry is None or entry.cache_type != cache_type:
            return None
        if entry.expires_at <= now:
            return None
        return entry

    async def record_hit(self, query_hash: str, accessed_at: datetime) -> int:
        entry = self._rows.get(query_hash)
        if entry is None:
            return 0
        updated = entry.model_copy(
            update={"hit_count": entry.hit_count + 1, "last_accessed_at": accessed_at}
        )
        self._rows[query_hash] = updated
        return updated.hit_count

    async def upsert(self, entry: CacheEntry) -> None:
        self._rows[entry.query_hash] = entry
        logger.debug("memory_cache_set", query_hash=entry.query_hash)

    async def delete(self, query_hash: str, cache_type: CacheType | None = None) -> int:
        entry = self._rows.get(query_hash)
        if entry is None:
            return 0
        if cache_type is not None and entry.cache_type != cache_type:
            return 0
        del self._rows[query_hash]
        return 1

    async def delete_expired(self, now: datetime) -> int:
        expired = [key for key, entry in self._rows.items() if entry.expires_at < now]
        for key in expired:
            del self._rows[key]
        return len(expired)

    async def count(self) -> int:
        return len(self._rows)

    def get_provider_name(self) -> str:
        return "memory_cache"
