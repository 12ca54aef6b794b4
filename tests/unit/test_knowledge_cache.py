"""Unit tests for KnowledgeCache over the memory and SQLite row stores."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from technodog.interfaces.cache_provider import ICacheProvider
from technodog.models.cache import CACHE_TTL, CacheType
from technodog.providers.cache.memory_cache import MemoryCacheProvider
from technodog.providers.cache.sqlite_cache import SQLiteCacheProvider
from technodog.services.feature_flags import FeatureFlagService
from technodog.services.knowledge_cache import KnowledgeCache
from technodog.utils.errors import StorageError
from technodog.utils.query_hash import generate_query_hash

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class _Clock:
    """Settable clock so TTL boundaries can be crossed without sleeping."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@pytest.fixture()
def clock() -> _Clock:
    return _Clock()


@pytest.fixture()
def enabled_flags(flags: FeatureFlagService) -> FeatureFlagService:
    flags.set("knowledge_cache_enabled", True)
    return flags


@pytest.fixture()
def memory_store() -> MemoryCacheProvider:
    return MemoryCacheProvider(max_size=100)


@pytest.fixture()
def cache(memory_store: MemoryCacheProvider, enabled_flags: FeatureFlagService, clock: _Clock) -> KnowledgeCache:
    return KnowledgeCache(store=memory_store, flags=enabled_flags, clock=clock)


# ======================================================================
# TTL policy
# ======================================================================


class TestTtlPolicy:
    def test_every_category_has_a_ttl(self) -> None:
        assert set(CACHE_TTL) == set(CacheType)

    def test_ttl_values(self) -> None:
        assert CACHE_TTL[CacheType.ARTIST] == timedelta(days=30)
        assert CACHE_TTL[CacheType.GENRE] == timedelta(days=30)
        assert CACHE_TTL[CacheType.EVENT] == timedelta(hours=12)
        assert CACHE_TTL[CacheType.NEWS] == timedelta(hours=24)
        assert CACHE_TTL[CacheType.SEARCH] == timedelta(hours=1)

    def test_parse_accepts_upper_case(self) -> None:
        assert CacheType.parse("ARTIST") is CacheType.ARTIST
        assert CacheType.parse(CacheType.NEWS) is CacheType.NEWS

    def test_parse_rejects_unknown(self) -> None:
        with pytest.raises(ValueError):
            CacheType.parse("podcast")


# ======================================================================
# Read / write with the memory store
# ======================================================================


class TestGetAndSet:
    @pytest.mark.asyncio
    async def test_miss_then_hit(self, cache: KnowledgeCache) -> None:
        miss = await cache.get_cached_result("Jeff Mills", CacheType.ARTIST)
        assert miss.from_cache is False
        assert miss.data is None

        await cache.set_cached_result("Jeff Mills", {"name": "Jeff Mills"}, CacheType.ARTIST)
        hit = await cache.get_cached_result("jeff mills ", CacheType.ARTIST)
        assert hit.from_cache is True
        assert hit.data == {"name": "Jeff Mills"}
        assert hit.hit_count == 1

    @pytest.mark.asyncio
    async def test_hit_count_increments(self, cache: KnowledgeCache) -> None:
        await cache.set_cached_result("Tresor", [1, 2], "venue")
        await cache.get_cached_result("Tresor", "venue")
        second = await cache.get_cached_result("Tresor", "venue")
        assert second.hit_count == 2

    @pytest.mark.asyncio
    async def test_category_mismatch_is_miss(self, cache: KnowledgeCache) -> None:
        await cache.set_cached_result("Tresor", {"x": 1}, CacheType.VENUE)
        lookup = await cache.get_cached_result("Tresor", CacheType.LABEL)
        assert lookup.from_cache is False

    @pytest.mark.asyncio
    async def test_filters_are_part_of_the_key(self, cache: KnowledgeCache) -> None:
        await cache.set_cached_result("techno", ["a"], CacheType.SEARCH, {"limit": 5})
        assert (await cache.get_cached_result("techno", CacheType.SEARCH)).from_cache is False
        lookup = await cache.get_cached_result("techno", CacheType.SEARCH, {"limit": 5})
        assert lookup.data == ["a"]

    @pytest.mark.asyncio
    async def test_rewrite_resets_hit_count(self, cache: KnowledgeCache) -> None:
        await cache.set_cached_result("Axis", 1, CacheType.LABEL)
        await cache.get_cached_result("Axis", CacheType.LABEL)
        await cache.set_cached_result("Axis", 2, CacheType.LABEL)
        lookup = await cache.get_cached_result("Axis", CacheType.LABEL)
        assert lookup.data == 2
        assert lookup.hit_count == 1

    @pytest.mark.asyncio
    async def test_expired_entry_is_invisible(self, cache: KnowledgeCache, clock: _Clock) -> None:
        await cache.set_cached_result("berlin", ["news"], CacheType.SEARCH)
        clock.advance(timedelta(minutes=59))
        assert (await cache.get_cached_result("berlin", CacheType.SEARCH)).from_cache is True
        clock.advance(timedelta(minutes=1))
        assert (await cache.get_cached_result("berlin", CacheType.SEARCH)).from_cache is False


class TestFlagGating:
    @pytest.mark.asyncio
    async def test_disabled_cache_never_writes_or_hits(
        self, memory_store: MemoryCacheProvider, flags: FeatureFlagService, clock: _Clock
    ) -> None:
        cache = KnowledgeCache(store=memory_store, flags=flags, clock=clock)
        await cache.set_cached_result("Jeff Mills", {"a": 1}, CacheType.ARTIST)
        assert await memory_store.count() == 0
        lookup = await cache.get_cached_result("Jeff Mills", CacheType.ARTIST)
        assert lookup.from_cache is False
        assert cache.get_stats().misses == 1

    @pytest.mark.asyncio
    async def test_toggling_flag_takes_effect_immediately(
        self, cache: KnowledgeCache, enabled_flags: FeatureFlagService
    ) -> None:
        await cache.set_cached_result("Jeff Mills", {"a": 1}, CacheType.ARTIST)
        enabled_flags.set("knowledge_cache_enabled", False)
        assert (await cache.get_cached_result("Jeff Mills", CacheType.ARTIST)).from_cache is False


class TestInvalidateAndCleanup:
    @pytest.mark.asyncio
    async def test_invalidate_removes_row(self, cache: KnowledgeCache) -> None:
        await cache.set_cached_result("Jeff Mills", {"a": 1}, CacheType.ARTIST)
        assert await cache.invalidate_cache("Jeff Mills", CacheType.ARTIST) == 1
        assert (await cache.get_cached_result("Jeff Mills", CacheType.ARTIST)).from_cache is False

    @pytest.mark.asyncio
    async def test_invalidate_scoped_to_other_category_keeps_row(self, cache: KnowledgeCache) -> None:
        await cache.set_cached_result("Jeff Mills", {"a": 1}, CacheType.ARTIST)
        assert await cache.invalidate_cache("Jeff Mills", CacheType.LABEL) == 0
        assert await cache.entry_count() == 1

    @pytest.mark.asyncio
    async def test_invalidate_unknown_category_raises(self, cache: KnowledgeCache) -> None:
        with pytest.raises(ValueError):
            await cache.invalidate_cache("Jeff Mills", "podcast")

    @pytest.mark.asyncio
    async def test_clear_expired_only_removes_expired(self, cache: KnowledgeCache, clock: _Clock) -> None:
        await cache.set_cached_result("search-a", 1, CacheType.SEARCH)
        await cache.set_cached_result("artist-a", 2, CacheType.ARTIST)
        clock.advance(timedelta(hours=2))
        assert await cache.clear_expired_cache() == 1
        assert await cache.entry_count() == 1


class TestWithCache:
    @pytest.mark.asyncio
    async def test_miss_calls_fetch_and_writes_in_background(self, cache: KnowledgeCache) -> None:
        fetch = AsyncMock(return_value={"bio": "Detroit"})

        first = await cache.with_cache("Jeff Mills", CacheType.ARTIST, fetch)
        assert first.from_cache is False
        assert first.data == {"bio": "Detroit"}

        await cache.tasks.drain()
        second = await cache.with_cache("Jeff Mills", CacheType.ARTIST, fetch)
        assert second.from_cache is True
        assert second.data == {"bio": "Detroit"}
        fetch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fetch_error_propagates_and_nothing_is_written(self, cache: KnowledgeCache) -> None:
        fetch = AsyncMock(side_effect=RuntimeError("upstream down"))
        with pytest.raises(RuntimeError):
            await cache.with_cache("Jeff Mills", CacheType.ARTIST, fetch)
        await cache.tasks.drain()
        assert await cache.entry_count() == 0


class TestStats:
    @pytest.mark.asyncio
    async def test_hit_rate(self, cache: KnowledgeCache) -> None:
        await cache.set_cached_result("Jeff Mills", 1, CacheType.ARTIST)
        await cache.get_cached_result("Jeff Mills", CacheType.ARTIST)
        await cache.get_cached_result("Robert Hood", CacheType.ARTIST)
        stats = cache.get_stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_get_stats_returns_copy_and_reset_clears(self, cache: KnowledgeCache) -> None:
        await cache.get_cached_result("nothing", CacheType.SEARCH)
        snapshot = cache.get_stats()
        snapshot.record_miss()
        assert cache.get_stats().misses == 1
        cache.reset_stats()
        assert cache.get_stats().hit_rate == 0.0


class TestStoreFailures:
    @pytest.fixture()
    def broken_store(self) -> MagicMock:
        store = MagicMock(spec=ICacheProvider)
        err = StorageError(message="disk full", provider_name="sqlite_cache")
        store.find_live = AsyncMock(side_effect=err)
        store.upsert = AsyncMock(side_effect=err)
        store.delete = AsyncMock(side_effect=err)
        store.delete_expired = AsyncMock(side_effect=err)
        store.count = AsyncMock(side_effect=err)
        return store

    @pytest.mark.asyncio
    async def test_failures_degrade_to_miss_and_noop(
        self, broken_store: MagicMock, enabled_flags: FeatureFlagService
    ) -> None:
        cache = KnowledgeCache(store=broken_store, flags=enabled_flags)
        assert (await cache.get_cached_result("x", CacheType.SEARCH)).from_cache is False
        await cache.set_cached_result("x", 1, CacheType.SEARCH)
        assert await cache.invalidate_cache("x") == 0
        assert await cache.clear_expired_cache() == 0
        assert await cache.entry_count() == 0


# ======================================================================
# SQLite row store
# ======================================================================


@pytest_asyncio.fixture()
async def sqlite_store(db_path: Path) -> SQLiteCacheProvider:
    store = SQLiteCacheProvider(db_path=db_path)
    await store.initialize()
    return store


class TestSQLiteCacheProvider:
    @pytest.mark.asyncio
    async def test_round_trip_through_service(
        self, sqlite_store: SQLiteCacheProvider, enabled_flags: FeatureFlagService, clock: _Clock
    ) -> None:
        cache = KnowledgeCache(store=sqlite_store, flags=enabled_flags, clock=clock)
        await cache.set_cached_result("Köln", {"city": "Köln"}, CacheType.VENUE, {"country": "DE"})
        lookup = await cache.get_cached_result("köln", CacheType.VENUE, {"country": "DE"})
        assert lookup.from_cache is True
        assert lookup.data == {"city": "Köln"}
        assert lookup.hit_count == 1

    @pytest.mark.asyncio
    async def test_artist_row_lives_thirty_days_and_counts_hits(
        self, sqlite_store: SQLiteCacheProvider, enabled_flags: FeatureFlagService, clock: _Clock
    ) -> None:
        cache = KnowledgeCache(store=sqlite_store, flags=enabled_flags, clock=clock)
        await cache.set_cached_result("Juan Atkins", {"city": "Detroit"}, CacheType.ARTIST)

        query_hash = generate_query_hash("Juan Atkins")
        row = await sqlite_store.find_live(query_hash, CacheType.ARTIST, T0)
        assert row is not None
        assert row.created_at == T0
        assert row.expires_at == T0 + timedelta(days=30)
        assert row.hit_count == 0

        lookup = await cache.get_cached_result("Juan Atkins", CacheType.ARTIST)
        assert lookup.from_cache is True
        assert lookup.hit_count == 1
        row = await sqlite_store.find_live(query_hash, CacheType.ARTIST, T0)
        assert row is not None
        assert row.hit_count == 1

        clock.advance(timedelta(days=30) - timedelta(seconds=1))
        assert (await cache.get_cached_result("Juan Atkins", CacheType.ARTIST)).from_cache is True
        clock.advance(timedelta(seconds=1))
        assert (await cache.get_cached_result("Juan Atkins", CacheType.ARTIST)).from_cache is False

    @pytest.mark.asyncio
    async def test_expiry_and_cleanup(
        self, sqlite_store: SQLiteCacheProvider, enabled_flags: FeatureFlagService, clock: _Clock
    ) -> None:
        cache = KnowledgeCache(store=sqlite_store, flags=enabled_flags, clock=clock)
        await cache.set_cached_result("festival", ["x"], CacheType.EVENT)
        clock.advance(timedelta(hours=13))
        assert (await cache.get_cached_result("festival", CacheType.EVENT)).from_cache is False
        assert await cache.entry_count() == 1
        assert await cache.clear_expired_cache() == 1
        assert await cache.entry_count() == 0

    @pytest.mark.asyncio
    async def test_delete_by_hash(self, sqlite_store: SQLiteCacheProvider, enabled_flags: FeatureFlagService) -> None:
        cache = KnowledgeCache(store=sqlite_store, flags=enabled_flags)
        await cache.set_cached_result("Axis", 1, CacheType.LABEL)
        assert await sqlite_store.delete(generate_query_hash("Axis"), CacheType.ARTIST) == 0
        assert await sqlite_store.delete(generate_query_hash("Axis")) == 1


class TestMemoryCacheProvider:
    @pytest.mark.asyncio
    async def test_lru_eviction(self, enabled_flags: FeatureFlagService) -> None:
        store = MemoryCacheProvider(max_size=2)
        cache = KnowledgeCache(store=store, flags=enabled_flags)
        for name in ("a", "b", "c"):
            await cache.set_cached_result(name, name, CacheType.SEARCH)
        assert await store.count() == 2
        assert (await cache.get_cached_result("a", CacheType.SEARCH)).from_cache is False
