"""SQLite-backed knowledge cache rows (``kl_cached_search``).

Uses ``aiosqlite`` for async I/O.  One row per ``query_hash``; the upsert
resets ``hit_count`` so a rewritten entry starts counting from zero.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from technodog.interfaces.cache_provider import ICacheProvider
from technodog.models.cache import CacheEntry, CacheType
from technodog.utils.errors import StorageError
from technodog.utils.timestamps import from_db_time, to_db_time

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/technodog.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS kl_cached_search (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    query_hash       TEXT    NOT NULL UNIQUE,
    query_text       TEXT    NOT NULL,
    filters_json     TEXT    NOT NULL DEFAULT '{}',
    cache_type       TEXT    NOT NULL,
    result_json      TEXT    NOT NULL,
    created_at       TEXT    NOT NULL,
    expires_at       TEXT    NOT NULL,
    hit_count        INTEGER NOT NULL DEFAULT 0,
    last_accessed_at TEXT
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_kl_cache_type ON kl_cached_search(cache_type);",
    "CREATE INDEX IF NOT EXISTS idx_kl_cache_expires ON kl_cached_search(expires_at);",
]

_UPSERT_SQL = """\
INSERT INTO kl_cached_search
    (query_hash, query_text, filters_json, cache_type, result_json,
     created_at, expires_at, hit_count, last_accessed_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(query_hash)
DO UPDATE SET query_text       = excluded.query_text,
              filters_json     = excluded.filters_json,
              cache_type       = excluded.cache_type,
              result_json      = excluded.result_json,
              created_at       = excluded.created_at,
              expires_at       = excluded.expires_at,
              hit_count        = excluded.hit_count,
              last_accessed_at = excluded.last_accessed_at;
"""

_SELECT_LIVE_SQL = """\
SELECT query_hash, query_text, filters_json, cache_type, result_json,
       created_at, expires_at, hit_count, last_accessed_at
FROM kl_cached_search
WHERE query_hash = ? AND cache_type = ? AND expires_at > ?;
"""


def _row_to_entry(row: aiosqlite.Row) -> CacheEntry:
    r: dict[str, Any] = dict(row)
    return CacheEntry(
        query_hash=r["query_hash"],
        query_text=r["query_text"],
        filters=json.loads(r["filters_json"] or "{}"),
        cache_type=CacheType(r["cache_type"]),
        result=json.loads(r["result_json"]),
        created_at=from_db_time(r["created_at"]),
        expires_at=from_db_time(r["expires_at"]),
        hit_count=r["hit_count"],
        last_accessed_at=from_db_time(r["last_accessed_at"]),
    )


class SQLiteCacheProvider(ICacheProvider):
    """SQLite persistence for knowledge cache entries."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the cache table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("cache_db_initialized", path=str(self._db_path))

    async def find_live(
        self,
        query_hash: str,
        cache_type: CacheType,
        now: datetime,
    ) -> CacheEntry | None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    _SELECT_LIVE_SQL,
                    (query_hash, cache_type.value, to_db_time(now)),
                )
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"Cache lookup failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return _row_to_entry(row) if row else None

    async def record_hit(self, query_hash: str, accessed_at: datetime) -> int:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    "UPDATE kl_cached_search "
                    "SET hit_count = hit_count + 1, last_accessed_at = ? "
                    "WHERE query_hash = ?",
                    (to_db_time(accessed_at), query_hash),
                )
                await db.commit()
                cursor = await db.execute(
                    "SELECT hit_count FROM kl_cached_search WHERE query_hash = ?",
                    (query_hash,),
                )
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"Cache hit update failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return int(row[0]) if row else 0

    async def upsert(self, entry: CacheEntry) -> None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _UPSERT_SQL,
                    (
                        entry.query_hash,
                        entry.query_text,
                        json.dumps(entry.filters, ensure_ascii=False),
                        entry.cache_type.value,
                        json.dumps(entry.result, ensure_ascii=False, default=str),
                        to_db_time(entry.created_at),
                        to_db_time(entry.expires_at),
                        entry.hit_count,
                        to_db_time(entry.last_accessed_at) if entry.last_accessed_at else None,
                    ),
                )
                await db.commit()
        except (aiosqlite.Error, TypeError, ValueError) as exc:
            raise StorageError(
                message=f"Cache write failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete(self, query_hash: str, cache_type: CacheType | None = None) -> int:
        if cache_type is None:
            sql = "DELETE FROM kl_cached_search WHERE query_hash = ?"
            params: tuple[Any, ...] = (query_hash,)
        else:
            sql = "DELETE FROM kl_cached_search WHERE query_hash = ? AND cache_type = ?"
            params = (query_hash, cache_type.value)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(sql, params)
                await db.commit()
                return cursor.rowcount
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"Cache delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete_expired(self, now: datetime) -> int:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    "DELETE FROM kl_cached_search WHERE expires_at < ?",
                    (to_db_time(now),),
                )
                await db.commit()
                return cursor.rowcount
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"Cache cleanup failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def count(self) -> int:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute("SELECT COUNT(*) FROM kl_cached_search")
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"Cache count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return int(row[0]) if row else 0

    def get_provider_name(self) -> str:
        return "sqlite_cache"
