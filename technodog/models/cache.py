"""Knowledge cache models: categories, TTL policy, rows and statistics."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CacheType(str, Enum):  # noqa: UP042
    """Cache categories.  The lower-case value is what the table stores."""

    ARTIST = "artist"
    LABEL = "label"
    VENUE = "venue"
    GENRE = "genre"
    EVENT = "event"
    NEWS = "news"
    SEARCH = "search"

    @classmethod
    def parse(cls, value: str | CacheType) -> CacheType:
        """Accept ``"ARTIST"``, ``"artist"`` or a member."""
        if isinstance(value, CacheType):
            return value
        return cls(value.lower())


# Slow-changing entity facts live longest; events and news go stale fast.
CACHE_TTL: dict[CacheType, timedelta] = {
    CacheType.ARTIST: timedelta(days=30),
    CacheType.LABEL: timedelta(days=30),
    CacheType.VENUE: timedelta(days=30),
    CacheType.GENRE: timedelta(days=30),
    CacheType.EVENT: timedelta(hours=12),
    CacheType.NEWS: timedelta(hours=24),
    CacheType.SEARCH: timedelta(hours=1),
}


class CacheEntry(BaseModel):
    """One row of the ``kl_cached_search`` table.

    ``expires_at`` is always ``created_at + CACHE_TTL[cache_type]``.  Rows
    past expiry are invisible to readers until a cleanup sweep deletes them.
    """

    model_config = ConfigDict(frozen=True)

    query_hash: str
    query_text: str
    filters: dict[str, Any] = Field(default_factory=dict)
    cache_type: CacheType
    result: Any = None
    created_at: datetime
    expires_at: datetime
    hit_count: int = Field(default=0, ge=0)
    last_accessed_at: datetime | None = None


class CacheLookup(BaseModel):
    """Result of a cache read: the payload and whether it came from the cache."""

    model_config = ConfigDict(frozen=True)

    data: Any = None
    from_cache: bool = False
    hit_count: int = 0


class CacheStats(BaseModel):
    """Process-local hit/miss counters.

    Diagnostic only: not persisted, reset on restart.  A single instance is
    injected into :class:`~technodog.services.knowledge_cache.KnowledgeCache`
    and mutated in place.
    """

    hits: int = 0
    misses: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def record_hit(self) -> None:
        self.hits += 1

    def record_miss(self) -> None:
        self.misses += 1

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0

    def snapshot(self) -> dict[str, float | int]:
        return {"hits": self.hits, "misses": self.misses, "hit_rate": self.hit_rate}
