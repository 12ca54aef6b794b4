"""SQLite-backed artist enrichment store.

Owns every table the enrichment pipeline reads or writes:

    canonical_artists, artist_aliases       artist identity
    source_domain_registry                  per-domain quality scores
    artist_raw_documents                    scraped pages
    artist_claims, artist_sources           atomic claims + their evidence
    artist_documents                        synthesised retrieval chunks
    artist_enrichment_runs                  run audit trail
    artist_enrichment_queue                 pending enrichment work

JSON-valued columns (``value_structured``, ``embedding``, ``metadata``,
``stats``, ``errors``, ``models_used``) are stored as text.  Every method
opens its own ``aiosqlite`` connection; SQLite errors are re-raised as
:class:`StorageError`.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from technodog.interfaces.enrichment_store import IEnrichmentStore
from technodog.models.enrichment import (
    ArtistDocument,
    CanonicalArtist,
    Claim,
    ClaimSource,
    ClaimType,
    EnrichmentRun,
    QueueItem,
    QueueStatus,
    RawDocument,
    RunStatus,
    SourceDomain,
    VerificationStatus,
)
from technodog.utils.errors import StorageError
from technodog.utils.timestamps import from_db_time, to_db_time, utcnow

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/technodog.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS canonical_artists (
    artist_id      TEXT PRIMARY KEY,
    canonical_name TEXT NOT NULL,
    slug           TEXT,
    country        TEXT,
    city           TEXT,
    primary_genre  TEXT,
    active_years   TEXT,
    created_at     TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS artist_aliases (
    artist_id  TEXT NOT NULL,
    alias_name TEXT NOT NULL,
    UNIQUE(artist_id, alias_name)
);
""",
    """\
CREATE TABLE IF NOT EXISTS source_domain_registry (
    domain            TEXT PRIMARY KEY,
    quality_score     REAL    NOT NULL DEFAULT 0.5,
    is_blocked        INTEGER NOT NULL DEFAULT 0,
    is_primary_source INTEGER NOT NULL DEFAULT 0
);
""",
    """\
CREATE TABLE IF NOT EXISTS artist_raw_documents (
    raw_doc_id       TEXT PRIMARY KEY,
    artist_id        TEXT NOT NULL,
    url              TEXT NOT NULL,
    domain           TEXT,
    content_text     TEXT NOT NULL,
    content_markdown TEXT,
    content_hash     TEXT NOT NULL,
    created_at       TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS artist_claims (
    claim_id             TEXT PRIMARY KEY,
    artist_id            TEXT NOT NULL,
    claim_type           TEXT NOT NULL,
    claim_text           TEXT NOT NULL,
    value_structured     TEXT,
    confidence_score     REAL NOT NULL DEFAULT 0.5,
    verification_status  TEXT NOT NULL DEFAULT 'unverified',
    contradicts_claim_id TEXT,
    extraction_model     TEXT,
    verification_model   TEXT,
    verified_at          TEXT,
    created_at           TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS artist_sources (
    source_id            TEXT PRIMARY KEY,
    claim_id             TEXT NOT NULL,
    raw_doc_id           TEXT,
    url                  TEXT NOT NULL,
    domain               TEXT,
    quote_snippet        TEXT,
    source_quality_score REAL NOT NULL DEFAULT 0.5
);
""",
    """\
CREATE TABLE IF NOT EXISTS artist_documents (
    document_id   TEXT PRIMARY KEY,
    artist_id     TEXT NOT NULL,
    document_type TEXT NOT NULL,
    title         TEXT NOT NULL,
    content       TEXT NOT NULL,
    chunk_index   INTEGER NOT NULL DEFAULT 0,
    embedding     TEXT,
    source_system TEXT NOT NULL,
    metadata      TEXT NOT NULL DEFAULT '{}',
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS artist_enrichment_runs (
    run_id      TEXT PRIMARY KEY,
    artist_id   TEXT NOT NULL,
    run_type    TEXT NOT NULL,
    status      TEXT NOT NULL,
    started_at  TEXT NOT NULL,
    finished_at TEXT,
    stats       TEXT NOT NULL DEFAULT '{}',
    errors      TEXT NOT NULL DEFAULT '[]',
    models_used TEXT NOT NULL DEFAULT '[]',
    created_at  TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS artist_enrichment_queue (
    queue_id        TEXT PRIMARY KEY,
    artist_id       TEXT NOT NULL,
    priority        INTEGER NOT NULL DEFAULT 0,
    reason          TEXT,
    status          TEXT NOT NULL DEFAULT 'pending',
    attempts        INTEGER NOT NULL DEFAULT 0,
    last_attempt_at TEXT,
    last_error      TEXT,
    created_at      TEXT NOT NULL
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_raw_docs_artist ON artist_raw_documents(artist_id);",
    "CREATE INDEX IF NOT EXISTS idx_raw_docs_url_hash ON artist_raw_documents(url, content_hash);",
    "CREATE INDEX IF NOT EXISTS idx_claims_artist ON artist_claims(artist_id);",
    "CREATE INDEX IF NOT EXISTS idx_claims_status ON artist_claims(verification_status);",
    "CREATE INDEX IF NOT EXISTS idx_sources_claim ON artist_sources(claim_id);",
    "CREATE INDEX IF NOT EXISTS idx_sources_raw_doc ON artist_sources(raw_doc_id);",
    "CREATE INDEX IF NOT EXISTS idx_artist_docs_artist ON artist_documents(artist_id, document_type);",
    "CREATE INDEX IF NOT EXISTS idx_runs_artist ON artist_enrichment_runs(artist_id);",
    "CREATE INDEX IF NOT EXISTS idx_queue_status ON artist_enrichment_queue(status, priority);",
]

_RAW_DOC_COLUMNS = (
    "raw_doc_id, artist_id, url, domain, content_text, content_markdown, "
    "content_hash, created_at"
)
_CLAIM_COLUMNS = (
    "claim_id, artist_id, claim_type, claim_text, value_structured, confidence_score, "
    "verification_status, contradicts_claim_id, extraction_model, verification_model, "
    "verified_at, created_at"
)
_ARTIST_DOC_COLUMNS = (
    "document_id, artist_id, document_type, title, content, chunk_index, embedding, "
    "source_system, metadata, created_at, updated_at"
)
_RUN_COLUMNS = (
    "run_id, artist_id, run_type, status, started_at, finished_at, stats, errors, models_used"
)
_QUEUE_COLUMNS = (
    "queue_id, artist_id, priority, reason, status, attempts, last_attempt_at, "
    "last_error, created_at"
)


def _dumps(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, default=str)


def _loads(value: str | None, default: Any = None) -> Any:
    if not value:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return default


def _row_to_raw_document(r: dict[str, Any]) -> RawDocument:
    return RawDocument(
        raw_doc_id=r["raw_doc_id"],
        artist_id=r["artist_id"],
        url=r["url"],
        domain=r["domain"] or "",
        content_text=r["content_text"],
        content_markdown=r["content_markdown"],
        content_hash=r["content_hash"],
        created_at=from_db_time(r["created_at"]),
    )


def _row_to_claim(r: dict[str, Any]) -> Claim:
    return Claim(
        claim_id=r["claim_id"],
        artist_id=r["artist_id"],
        claim_type=ClaimType.coerce(r["claim_type"]),
        claim_text=r["claim_text"],
        value_structured=_loads(r["value_structured"]),
        confidence_score=r["confidence_score"],
        verification_status=VerificationStatus(r["verification_status"]),
        contradicts_claim_id=r["contradicts_claim_id"],
        extraction_model=r["extraction_model"],
        verification_model=r["verification_model"],
        verified_at=from_db_time(r["verified_at"]),
        created_at=from_db_time(r["created_at"]),
    )


def _row_to_artist_document(r: dict[str, Any]) -> ArtistDocument:
    return ArtistDocument(
        document_id=r["document_id"],
        artist_id=r["artist_id"],
        document_type=r["document_type"],
        title=r["title"],
        content=r["content"],
        chunk_index=r["chunk_index"],
        embedding=_loads(r["embedding"]),
        source_system=r["source_system"],
        metadata=_loads(r["metadata"], {}),
        created_at=from_db_time(r["created_at"]),
        updated_at=from_db_time(r["updated_at"]),
    )


def _row_to_run(r: dict[str, Any]) -> EnrichmentRun:
    return EnrichmentRun(
        run_id=r["run_id"],
        artist_id=r["artist_id"],
        run_type=r["run_type"],
        status=RunStatus(r["status"]),
        started_at=from_db_time(r["started_at"]),
        finished_at=from_db_time(r["finished_at"]),
        stats=_loads(r["stats"], {}),
        errors=_loads(r["errors"], []),
        models_used=_loads(r["models_used"], []),
    )


def _row_to_queue_item(r: dict[str, Any]) -> QueueItem:
    return QueueItem(
        queue_id=r["queue_id"],
        artist_id=r["artist_id"],
        priority=r["priority"],
        reason=r["reason"] or "manual_request",
        status=QueueStatus(r["status"]),
        attempts=r["attempts"],
        last_attempt_at=from_db_time(r["last_attempt_at"]),
        last_error=r["last_error"],
        created_at=from_db_time(r["created_at"]),
    )


class SQLiteEnrichmentStore(IEnrichmentStore):
    """SQLite persistence for the artist enrichment pipeline."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create every enrichment table and index if missing."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("enrichment_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Low-level helpers
    # ------------------------------------------------------------------

    async def _execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run one write statement and return the affected row count."""
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(sql, tuple(params))
                await db.commit()
                return cursor.rowcount
        except aiosqlite.Error as exc:
            raise StorageError(message=str(exc), provider_name="sqlite") from exc

    async def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, tuple(params))
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StorageError(message=str(exc), provider_name="sqlite") from exc
        return [dict(row) for row in rows]

    async def _fetchone(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        rows = await self._fetchall(sql, params)
        return rows[0] if rows else None

    async def _scalar(self, sql: str, params: Sequence[Any] = ()) -> int:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(sql, tuple(params))
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StorageError(message=str(exc), provider_name="sqlite") from exc
        return int(row[0]) if row and row[0] is not None else 0

    # ------------------------------------------------------------------
    # Artists
    # ------------------------------------------------------------------

    async def get_artist(self, artist_id: str) -> CanonicalArtist | None:
        row = await self._fetchone(
            "SELECT artist_id, canonical_name, slug, country, city, primary_genre, active_years "
            "FROM canonical_artists WHERE artist_id = ?",
            (artist_id,),
        )
        if row is None:
            return None
        alias_rows = await self._fetchall(
            "SELECT alias_name FROM artist_aliases WHERE artist_id = ? ORDER BY rowid",
            (artist_id,),
        )
        return CanonicalArtist(**row, aliases=[a["alias_name"] for a in alias_rows])

    async def upsert_artist(self, artist: CanonicalArtist) -> None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    "INSERT INTO canonical_artists "
                    "(artist_id, canonical_name, slug, country, city, primary_genre, "
                    " active_years, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
                    "ON CONFLICT(artist_id) DO UPDATE SET "
                    "canonical_name = excluded.canonical_name, slug = excluded.slug, "
                    "country = excluded.country, city = excluded.city, "
                    "primary_genre = excluded.primary_genre, "
                    "active_years = excluded.active_years",
                    (
                        artist.artist_id,
                        artist.canonical_name,
                        artist.slug,
                        artist.country,
                        artist.city,
                        artist.primary_genre,
                        artist.active_years,
                        to_db_time(utcnow()),
                    ),
                )
                await db.execute(
                    "DELETE FROM artist_aliases WHERE artist_id = ?", (artist.artist_id,)
                )
                await db.executemany(
                    "INSERT OR IGNORE INTO artist_aliases (artist_id, alias_name) VALUES (?, ?)",
                    [(artist.artist_id, alias) for alias in artist.aliases],
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise StorageError(message=str(exc), provider_name="sqlite") from exc

    async def list_artists_with_verified_claims(self, limit: int) -> list[str]:
        rows = await self._fetchall(
            "SELECT DISTINCT artist_id FROM artist_claims "
            "WHERE verification_status = 'verified' LIMIT ?",
            (limit,),
        )
        return [r["artist_id"] for r in rows]

    async def count_artists(self) -> int:
        return await self._scalar("SELECT COUNT(*) FROM canonical_artists")

    async def count_artists_with_verified_claims(self) -> int:
        return await self._scalar(
            "SELECT COUNT(DISTINCT artist_id) FROM artist_claims "
            "WHERE verification_status IN ('verified', 'partially_verified')"
        )

    async def count_artists_with_documents(self, document_type: str) -> int:
        return await self._scalar(
            "SELECT COUNT(DISTINCT artist_id) FROM artist_documents WHERE document_type = ?",
            (document_type,),
        )

    # ------------------------------------------------------------------
    # Source domains
    # ------------------------------------------------------------------

    async def get_domain(self, domain: str) -> SourceDomain | None:
        row = await self._fetchone(
            "SELECT domain, quality_score, is_blocked, is_primary_source "
            "FROM source_domain_registry WHERE domain = ?",
            (domain,),
        )
        if row is None:
            return None
        return SourceDomain(
            domain=row["domain"],
            quality_score=row["quality_score"],
            is_blocked=bool(row["is_blocked"]),
            is_primary_source=bool(row["is_primary_source"]),
        )

    async def upsert_domain(self, domain: SourceDomain) -> None:
        await self._execute(
            "INSERT INTO source_domain_registry "
            "(domain, quality_score, is_blocked, is_primary_source) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(domain) DO UPDATE SET quality_score = excluded.quality_score, "
            "is_blocked = excluded.is_blocked, is_primary_source = excluded.is_primary_source",
            (
                domain.domain,
                domain.quality_score,
                int(domain.is_blocked),
                int(domain.is_primary_source),
            ),
        )

    async def top_source_domains(self, limit: int) -> list[dict[str, Any]]:
        return await self._fetchall(
            "SELECT domain, COUNT(*) AS count FROM artist_raw_documents "
            "WHERE domain IS NOT NULL AND domain != '' "
            "GROUP BY domain ORDER BY count DESC, domain ASC LIMIT ?",
            (limit,),
        )

    # ------------------------------------------------------------------
    # Raw documents
    # ------------------------------------------------------------------

    async def find_raw_document(self, url: str, content_hash: str) -> str | None:
        row = await self._fetchone(
            "SELECT raw_doc_id FROM artist_raw_documents WHERE url = ? AND content_hash = ?",
            (url, content_hash),
        )
        return row["raw_doc_id"] if row else None

    async def insert_raw_document(self, document: RawDocument) -> None:
        await self._execute(
            f"INSERT INTO artist_raw_documents ({_RAW_DOC_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                document.raw_doc_id,
                document.artist_id,
                document.url,
                document.domain,
                document.content_text,
                document.content_markdown,
                document.content_hash,
                to_db_time(document.created_at),
            ),
        )

    async def get_raw_document(self, raw_doc_id: str) -> RawDocument | None:
        row = await self._fetchone(
            f"SELECT {_RAW_DOC_COLUMNS} FROM artist_raw_documents WHERE raw_doc_id = ?",
            (raw_doc_id,),
        )
        return _row_to_raw_document(row) if row else None

    async def list_unprocessed_raw_documents(
        self, artist_id: str, limit: int
    ) -> list[RawDocument]:
        rows = await self._fetchall(
            f"SELECT {_RAW_DOC_COLUMNS} FROM artist_raw_documents d "
            "WHERE d.artist_id = ? AND NOT EXISTS "
            "(SELECT 1 FROM artist_sources s WHERE s.raw_doc_id = d.raw_doc_id) "
            "ORDER BY d.created_at DESC LIMIT ?",
            (artist_id, limit),
        )
        return [_row_to_raw_document(r) for r in rows]

    async def count_raw_documents(self, artist_id: str | None = None) -> int:
        if artist_id is None:
            return await self._scalar("SELECT COUNT(*) FROM artist_raw_documents")
        return await self._scalar(
            "SELECT COUNT(*) FROM artist_raw_documents WHERE artist_id = ?", (artist_id,)
        )

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    async def insert_claim(self, claim: Claim) -> None:
        await self._execute(
            f"INSERT INTO artist_claims ({_CLAIM_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                claim.claim_id,
                claim.artist_id,
                claim.claim_type.value,
                claim.claim_text,
                _dumps(claim.value_structured),
                claim.confidence_score,
                claim.verification_status.value,
                claim.contradicts_claim_id,
                claim.extraction_model,
                claim.verification_model,
                to_db_time(claim.verified_at) if claim.verified_at else None,
                to_db_time(claim.created_at),
            ),
        )

    async def insert_claim_source(self, source: ClaimSource) -> None:
        await self._execute(
            "INSERT INTO artist_sources "
            "(source_id, claim_id, raw_doc_id, url, domain, quote_snippet, source_quality_score) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                source.source_id,
                source.claim_id,
                source.raw_doc_id,
                source.url,
                source.domain,
                source.quote_snippet,
                source.source_quality_score,
            ),
        )

    async def get_claim(self, claim_id: str) -> Claim | None:
        row = await self._fetchone(
            f"SELECT {_CLAIM_COLUMNS} FROM artist_claims WHERE claim_id = ?", (claim_id,)
        )
        return _row_to_claim(row) if row else None

    async def list_claims(
        self,
        artist_id: str,
        statuses: Sequence[VerificationStatus] | None = None,
        limit: int = 100,
        order_by_confidence: bool = False,
    ) -> list[Claim]:
        sql = f"SELECT {_CLAIM_COLUMNS} FROM artist_claims WHERE artist_id = ?"
        params: list[Any] = [artist_id]
        if statuses:
            placeholders = ", ".join("?" for _ in statuses)
            sql += f" AND verification_status IN ({placeholders})"
            params.extend(s.value for s in statuses)
        if order_by_confidence:
            sql += " ORDER BY confidence_score DESC, created_at ASC"
        else:
            sql += " ORDER BY created_at ASC, rowid ASC"
        sql += " LIMIT ?"
        params.append(limit)
        rows = await self._fetchall(sql, params)
        return [_row_to_claim(r) for r in rows]

    async def list_claim_sources(self, claim_id: str) -> list[ClaimSource]:
        rows = await self._fetchall(
            "SELECT source_id, claim_id, raw_doc_id, url, domain, quote_snippet, "
            "source_quality_score FROM artist_sources WHERE claim_id = ? ORDER BY rowid",
            (claim_id,),
        )
        return [ClaimSource(**r) for r in rows]

    async def update_claim_verification(
        self,
        claim_id: str,
        status: VerificationStatus,
        confidence: float,
        verification_model: str | None,
        verified_at: datetime,
    ) -> None:
        await self._execute(
            "UPDATE artist_claims SET verification_status = ?, confidence_score = ?, "
            "verification_model = ?, verified_at = ? WHERE claim_id = ?",
            (status.value, confidence, verification_model, to_db_time(verified_at), claim_id),
        )

    async def mark_claim_disputed(self, claim_id: str, contradicts_claim_id: str) -> None:
        await self._execute(
            "UPDATE artist_claims SET verification_status = 'disputed', "
            "contradicts_claim_id = ? WHERE claim_id = ?",
            (contradicts_claim_id, claim_id),
        )

    async def count_claims_by_status(self, artist_id: str | None = None) -> dict[str, int]:
        sql = "SELECT verification_status, COUNT(*) AS n FROM artist_claims"
        params: tuple[Any, ...] = ()
        if artist_id is not None:
            sql += " WHERE artist_id = ?"
            params = (artist_id,)
        sql += " GROUP BY verification_status"
        counts = {status.value: 0 for status in VerificationStatus}
        for row in await self._fetchall(sql, params):
            counts[row["verification_status"]] = row["n"]
        return counts

    async def count_claims_by_type(self, artist_id: str) -> dict[str, int]:
        rows = await self._fetchall(
            "SELECT claim_type, COUNT(*) AS n FROM artist_claims WHERE artist_id = ? "
            "GROUP BY claim_type ORDER BY n DESC",
            (artist_id,),
        )
        return {r["claim_type"]: r["n"] for r in rows}

    # ------------------------------------------------------------------
    # Artist documents
    # ------------------------------------------------------------------

    async def get_latest_artist_document(
        self, artist_id: str, document_type: str
    ) -> ArtistDocument | None:
        row = await self._fetchone(
            f"SELECT {_ARTIST_DOC_COLUMNS} FROM artist_documents "
            "WHERE artist_id = ? AND document_type = ? ORDER BY updated_at DESC LIMIT 1",
            (artist_id, document_type),
        )
        return _row_to_artist_document(row) if row else None

    async def delete_artist_documents(self, artist_id: str, source_system: str) -> int:
        return await self._execute(
            "DELETE FROM artist_documents WHERE artist_id = ? AND source_system = ?",
            (artist_id, source_system),
        )

    async def insert_artist_document(self, document: ArtistDocument) -> None:
        await self._execute(
            f"INSERT INTO artist_documents ({_ARTIST_DOC_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                document.document_id,
                document.artist_id,
                document.document_type,
                document.title,
                document.content,
                document.chunk_index,
                _dumps(document.embedding),
                document.source_system,
                _dumps(document.metadata) or "{}",
                to_db_time(document.created_at),
                to_db_time(document.updated_at),
            ),
        )

    async def count_artist_documents(self, document_type: str | None = None) -> int:
        if document_type is None:
            return await self._scalar("SELECT COUNT(*) FROM artist_documents")
        return await self._scalar(
            "SELECT COUNT(*) FROM artist_documents WHERE document_type = ?", (document_type,)
        )

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def create_run(self, run: EnrichmentRun) -> None:
        await self._execute(
            f"INSERT INTO artist_enrichment_runs ({_RUN_COLUMNS}, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                run.run_id,
                run.artist_id,
                run.run_type,
                run.status.value,
                to_db_time(run.started_at),
                to_db_time(run.finished_at) if run.finished_at else None,
                _dumps(run.stats),
                _dumps(run.errors),
                _dumps(run.models_used),
                to_db_time(utcnow()),
            ),
        )

    async def update_run(
        self,
        run_id: str,
        status: RunStatus | None = None,
        stats: dict[str, Any] | None = None,
        errors: list[str] | None = None,
        finished_at: datetime | None = None,
        models_used: list[str] | None = None,
    ) -> None:
        assignments: list[str] = []
        params: list[Any] = []
        if status is not None:
            assignments.append("status = ?")
            params.append(status.value)
        if stats is not None:
            assignments.append("stats = ?")
            params.append(_dumps(stats))
        if errors is not None:
            assignments.append("errors = ?")
            params.append(_dumps(errors))
        if finished_at is not None:
            assignments.append("finished_at = ?")
            params.append(to_db_time(finished_at))
        if models_used is not None:
            assignments.append("models_used = ?")
            params.append(_dumps(models_used))
        if not assignments:
            return
        params.append(run_id)
        await self._execute(
            f"UPDATE artist_enrichment_runs SET {', '.join(assignments)} WHERE run_id = ?",
            params,
        )

    async def get_run(self, run_id: str) -> EnrichmentRun | None:
        row = await self._fetchone(
            f"SELECT {_RUN_COLUMNS} FROM artist_enrichment_runs WHERE run_id = ?", (run_id,)
        )
        return _row_to_run(row) if row else None

    async def get_latest_run(self, artist_id: str) -> EnrichmentRun | None:
        row = await self._fetchone(
            f"SELECT {_RUN_COLUMNS} FROM artist_enrichment_runs WHERE artist_id = ? "
            "ORDER BY created_at DESC, rowid DESC LIMIT 1",
            (artist_id,),
        )
        return _row_to_run(row) if row else None

    async def list_recent_runs(self, limit: int) -> list[dict[str, Any]]:
        rows = await self._fetchall(
            "SELECT r.run_id, r.artist_id, r.run_type, r.status, r.started_at, "
            "r.finished_at, r.stats, r.errors, a.canonical_name AS artist_name "
            "FROM artist_enrichment_runs r "
            "LEFT JOIN canonical_artists a ON a.artist_id = r.artist_id "
            "ORDER BY r.created_at DESC, r.rowid DESC LIMIT ?",
            (limit,),
        )
        for row in rows:
            row["stats"] = _loads(row["stats"], {})
            row["errors"] = _loads(row["errors"], [])
        return rows

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    async def enqueue(self, item: QueueItem) -> bool:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    "SELECT 1 FROM artist_enrichment_queue "
                    "WHERE artist_id = ? AND status IN ('pending', 'processing') LIMIT 1",
                    (item.artist_id,),
                )
                if await cursor.fetchone() is not None:
                    return False
                await db.execute(
                    f"INSERT INTO artist_enrichment_queue ({_QUEUE_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        item.queue_id,
                        item.artist_id,
                        item.priority,
                        item.reason,
                        item.status.value,
                        item.attempts,
                        to_db_time(item.last_attempt_at) if item.last_attempt_at else None,
                        item.last_error,
                        to_db_time(item.created_at),
                    ),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise StorageError(message=str(exc), provider_name="sqlite") from exc
        return True

    async def list_pending(self, limit: int) -> list[QueueItem]:
        rows = await self._fetchall(
            f"SELECT {_QUEUE_COLUMNS} FROM artist_enrichment_queue WHERE status = 'pending' "
            "ORDER BY priority DESC, created_at ASC, rowid ASC LIMIT ?",
            (limit,),
        )
        return [_row_to_queue_item(r) for r in rows]

    async def update_queue_item(
        self,
        queue_id: str,
        status: QueueStatus,
        attempts: int | None = None,
        last_attempt_at: datetime | None = None,
        last_error: str | None = None,
    ) -> None:
        assignments = ["status = ?"]
        params: list[Any] = [status.value]
        if attempts is not None:
            assignments.append("attempts = ?")
            params.append(attempts)
        if last_attempt_at is not None:
            assignments.append("last_attempt_at = ?")
            params.append(to_db_time(last_attempt_at))
        if last_error is not None:
            assignments.append("last_error = ?")
            params.append(last_error)
        params.append(queue_id)
        await self._execute(
            f"UPDATE artist_enrichment_queue SET {', '.join(assignments)} WHERE queue_id = ?",
            params,
        )

    async def get_queue_item(self, queue_id: str) -> QueueItem | None:
        row = await self._fetchone(
            f"SELECT {_QUEUE_COLUMNS} FROM artist_enrichment_queue WHERE queue_id = ?",
            (queue_id,),
        )
        return _row_to_queue_item(row) if row else None

    async def count_queue_by_status(self) -> dict[str, int]:
        rows = await self._fetchall(
            "SELECT status, COUNT(*) AS n FROM artist_enrichment_queue GROUP BY status"
        )
        return {r["status"]: r["n"] for r in rows}
