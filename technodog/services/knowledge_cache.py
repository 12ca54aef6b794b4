"""Knowledge cache: TTL-bounded memoisation of knowledge queries.

# ─── HOW THE CACHE WORKS (Junior Developer Guide) ─────────────────────
#
# Every lookup is keyed by ``generate_query_hash(query_text, filters)``.
# A row lives for ``CACHE_TTL[cache_type]`` (30 days for entity facts,
# 12 h for events, 24 h for news, 1 h for free-text search).
#
#   get_cached_result()  ->  row with expires_at > now?  hit : miss
#   set_cached_result()  ->  upsert row, hit_count = 0, last write wins
#   with_cache(fetch)    ->  hit ? payload : fetch(), then write in the
#                            background (the caller never waits on it)
#
# The cache is a *soft* dependency.  When the KNOWLEDGE_CACHE_ENABLED flag
# is off every read is a miss and every write a no-op; when the store
# fails, reads degrade to misses and writes are logged and dropped.
# Nothing in this module raises to the caller except errors from the
# caller's own fetch function.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

import structlog

from technodog.interfaces.cache_provider import ICacheProvider
from technodog.models.cache import CACHE_TTL, CacheEntry, CacheLookup, CacheStats, CacheType
from technodog.services.feature_flags import FeatureFlagService
from technodog.utils.concurrency import TaskTracker
from technodog.utils.errors import TechnoDogError
from technodog.utils.query_hash import generate_query_hash
from technodog.utils.timestamps import utcnow

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

# Store failures that degrade to a miss or a dropped write.
_STORE_ERRORS = (TechnoDogError, OSError, ValueError, TypeError)


class KnowledgeCache:
    """Read-through cache over an :class:`ICacheProvider`.

    Parameters
    ----------
    store:
        Row store for ``kl_cached_search``.
    flags:
        Feature flag service; consulted on every call so toggling the
        cache takes effect immediately.
    stats:
        Hit/miss counters to update.  A fresh :class:`CacheStats` is used
        when omitted.
    clock:
        Returns the current UTC time.  Tests inject a fixed clock.
    tasks:
        Tracker for background writes scheduled by :meth:`with_cache`.
    """

    def __init__(
        self,
        store: ICacheProvider,
        flags: FeatureFlagService,
        stats: CacheStats | None = None,
        clock: Callable[[], datetime] | None = None,
        tasks: TaskTracker | None = None,
    ) -> None:
        self._store = store
        self._flags = flags
        self._stats = stats if stats is not None else CacheStats()
        self._clock = clock or utcnow
        self._tasks = tasks or TaskTracker("cache_writes")

    @property
    def tasks(self) -> TaskTracker:
        """Tracker holding background cache writes."""
        return self._tasks

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_cached_result(
        self,
        query_text: str,
        cache_type: CacheType | str = CacheType.SEARCH,
        filters: dict[str, Any] | None = None,
    ) -> CacheLookup:
        """Return the live cached payload for a query, or a miss."""
        cache_type = CacheType.parse(cache_type)
        query_hash = generate_query_hash(query_text, filters)

        self._flags.log_shadow_activity(
            "cache_lookup",
            {"query_hash": query_hash, "query_text": query_text, "cache_type": cache_type.value},
        )

        if not self._flags.is_cache_enabled():
            self._stats.record_miss()
            return CacheLookup()

        now = self._clock()
        try:
            entry = await self._store.find_live(query_hash, cache_type, now)
        except _STORE_ERRORS as exc:
            logger.warning("cache_lookup_failed", query_hash=query_hash, error=str(exc))
            self._stats.record_miss()
            return CacheLookup()

        if entry is None:
            self._stats.record_miss()
            logger.debug("cache_miss", cache_type=cache_type.value, query_text=query_text)
            return CacheLookup()

        hit_count = entry.hit_count + 1
        try:
            hit_count = await self._store.record_hit(query_hash, now) or hit_count
        except _STORE_ERRORS as exc:
            logger.warning("cache_hit_update_failed", query_hash=query_hash, error=str(exc))

        self._stats.record_hit()
        logger.debug("cache_hit", cache_type=cache_type.value, query_text=query_text)
        return CacheLookup(data=entry.result, from_cache=True, hit_count=hit_count)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def set_cached_result(
        self,
        query_text: str,
        result: Any,
        cache_type: CacheType | str = CacheType.SEARCH,
        filters: dict[str, Any] | None = None,
    ) -> None:
        """Store *result* for the query with the category's TTL."""
        cache_type = CacheType.parse(cache_type)
        query_hash = generate_query_hash(query_text, filters)
        now = self._clock()
        expires_at = now + CACHE_TTL[cache_type]

        self._flags.log_shadow_activity(
            "cache_write",
            {
                "query_hash": query_hash,
                "cache_type": cache_type.value,
                "expires_at": expires_at.isoformat(),
            },
        )

        if not self._flags.is_cache_enabled():
            return

        entry = CacheEntry(
            query_hash=query_hash,
            query_text=query_text,
            filters=filters or {},
            cache_type=cache_type,
            result=result,
            created_at=now,
            expires_at=expires_at,
            hit_count=0,
            last_accessed_at=now,
        )
        try:
            await self._store.upsert(entry)
        except _STORE_ERRORS as exc:
            logger.warning("cache_write_failed", query_hash=query_hash, error=str(exc))
            return
        logger.debug(
            "cache_write",
            cache_type=cache_type.value,
            query_text=query_text,
            expires_at=expires_at.isoformat(),
        )

    async def invalidate_cache(
        self,
        query_text: str,
        cache_type: CacheType | str | None = None,
        filters: dict[str, Any] | None = None,
    ) -> int:
        """Delete the row for a query, optionally only within one category.

        Returns the number of rows removed (0 on error).
        """
        parsed = CacheType.parse(cache_type) if cache_type is not None else None
        query_hash = generate_query_hash(query_text, filters)
        try:
            removed = await self._store.delete(query_hash, parsed)
        except _STORE_ERRORS as exc:
            logger.warning("cache_invalidate_failed", query_hash=query_hash, error=str(exc))
            return 0
        logger.info("cache_invalidate", query_text=query_text, removed=removed)
        return removed

    async def clear_expired_cache(self) -> int:
        """Delete rows whose ``expires_at`` is in the past; return the count."""
        try:
            removed = await self._store.delete_expired(self._clock())
        except _STORE_ERRORS as exc:
            logger.warning("cache_cleanup_failed", error=str(exc))
            return 0
        logger.info("cache_cleanup", removed=removed)
        return removed

    # ------------------------------------------------------------------
    # Read-through wrapper
    # ------------------------------------------------------------------

    async def with_cache(
        self,
        query_text: str,
        cache_type: CacheType | str,
        fetch_fn: Callable[[], Awaitable[_T]],
        filters: dict[str, Any] | None = None,
    ) -> CacheLookup:
        """Serve from cache, or call *fetch_fn* and cache its result.

        On a miss the result is returned as soon as *fetch_fn* resolves; the
        cache write runs on :attr:`tasks` and its failures are only logged.
        Exceptions from *fetch_fn* propagate unchanged and nothing is
        written.
        """
        cached = await self.get_cached_result(query_text, cache_type, filters)
        if cached.from_cache:
            return cached

        result = await fetch_fn()
        self._tasks.schedule(self.set_cached_result(query_text, result, cache_type, filters))
        return CacheLookup(data=result, from_cache=False)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_stats(self) -> CacheStats:
        """Return a copy of the current hit/miss counters."""
        return self._stats.model_copy()

    def reset_stats(self) -> None:
        self._stats.reset()

    async def entry_count(self) -> int:
        """Number of stored rows, live or expired (0 on error)."""
        try:
            return await self._store.count()
        except _STORE_ERRORS as exc:
            logger.warning("cache_count_failed", error=str(exc))
            return 0
