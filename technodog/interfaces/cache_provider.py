"""Abstract base class for knowledge-cache row stores.

The knowledge cache service owns hashing, TTL policy, feature-flag gating
and statistics; a provider only persists :class:`CacheEntry` rows keyed by
``query_hash``.  Implementations may use SQLite, an in-memory dict, or a
remote table, and may raise on failure: the service turns every provider
error into a cache miss or a logged no-op.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from technodog.models.cache import CacheEntry, CacheType


class ICacheProvider(ABC):
    """Contract for the ``kl_cached_search`` row store.

    All operations are async so network-backed stores fit without
    blocking the event loop.
    """

    async def initialize(self) -> None:  # noqa: B027
        """Create backing tables if needed.  Default is a no-op."""

    @abstractmethod
    async def find_live(
        self,
        query_hash: str,
        cache_type: CacheType,
        now: datetime,
    ) -> CacheEntry | None:
        """Return the row for (*query_hash*, *cache_type*) if ``expires_at > now``.

        Parameters
        ----------
        query_hash:
            Key produced by :func:`~technodog.utils.query_hash.generate_query_hash`.
        cache_type:
            Category the row must belong to.
        now:
            Reference time for the expiry comparison.

        Returns
        -------
        CacheEntry or None
            The live row, or ``None`` when absent or expired.
        """

    @abstractmethod
    async def record_hit(self, query_hash: str, accessed_at: datetime) -> int:
        """Increment ``hit_count`` and set ``last_accessed_at``.

        Returns
        -------
        int
            The hit count after the increment (0 when the row vanished).
        """

    @abstractmethod
    async def upsert(self, entry: CacheEntry) -> None:
        """Insert *entry*, overwriting any row with the same ``query_hash``.

        Last write wins; there is no versioning or conflict detection.
        """

    @abstractmethod
    async def delete(self, query_hash: str, cache_type: CacheType | None = None) -> int:
        """Delete rows matching *query_hash* (optionally scoped to a category).

        Returns the number of rows removed.
        """

    @abstractmethod
    async def delete_expired(self, now: datetime) -> int:
        """Delete every row whose ``expires_at < now``; return the count."""

    @abstractmethod
    async def count(self) -> int:
        """Return the number of stored rows, expired or not."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this cache backend."""
