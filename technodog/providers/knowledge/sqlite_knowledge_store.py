"""SQLite-backed knowledge store.

Persists ingestion output to two tables: ``documents`` (retrieval chunks,
embeddings stored as JSON arrays) and ``td_knowledge_entities`` (unique on
``(name, type)``).  Uses ``aiosqlite`` for async I/O.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from technodog.interfaces.knowledge_store import IKnowledgeStore
from technodog.models.knowledge import KnowledgeDocument, KnowledgeEntity
from technodog.utils.errors import StorageError
from technodog.utils.timestamps import from_db_time, to_db_time, utcnow

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/technodog.db")

_CREATE_DOCUMENTS_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    title       TEXT    NOT NULL,
    content     TEXT    NOT NULL,
    source      TEXT    NOT NULL,
    embedding   TEXT,
    metadata    TEXT    NOT NULL DEFAULT '{}',
    chunk_index INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT    NOT NULL
);
"""

_CREATE_ENTITIES_SQL = """\
CREATE TABLE IF NOT EXISTS td_knowledge_entities (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT    NOT NULL,
    type        TEXT    NOT NULL,
    description TEXT,
    aliases     TEXT    NOT NULL DEFAULT '[]',
    city        TEXT,
    country     TEXT,
    source_urls TEXT    NOT NULL DEFAULT '[]',
    created_at  TEXT    NOT NULL,
    UNIQUE(name, type)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_title ON documents(title);",
    "CREATE INDEX IF NOT EXISTS idx_entities_type ON td_knowledge_entities(type);",
]

_INSERT_DOCUMENT_SQL = """\
INSERT INTO documents (title, content, source, embedding, metadata, chunk_index, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?);
"""

_INSERT_ENTITY_SQL = """\
INSERT INTO td_knowledge_entities
    (name, type, description, aliases, city, country, source_urls, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?);
"""

_SEARCH_DOCUMENTS_SQL = """\
SELECT id, title, content, source, embedding, metadata, chunk_index, created_at
FROM documents
WHERE lower(title) LIKE ? OR lower(content) LIKE ?
ORDER BY id
LIMIT ?;
"""


def _row_to_document(row: aiosqlite.Row) -> KnowledgeDocument:
    r: dict[str, Any] = dict(row)
    return KnowledgeDocument(
        id=r["id"],
        title=r["title"],
        content=r["content"],
        source=r["source"],
        embedding=json.loads(r["embedding"]) if r["embedding"] else None,
        metadata=json.loads(r["metadata"] or "{}"),
        chunk_index=r["chunk_index"],
        created_at=from_db_time(r["created_at"]),
    )


class SQLiteKnowledgeStore(IKnowledgeStore):
    """SQLite persistence for ingested documents and entities."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the knowledge tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_DOCUMENTS_SQL)
            await db.execute(_CREATE_ENTITIES_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("knowledge_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    async def entity_exists(self, name: str, entity_type: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "SELECT 1 FROM td_knowledge_entities WHERE name = ? AND type = ? LIMIT 1",
                (name, entity_type),
            )
            row = await cursor.fetchone()
        return row is not None

    async def insert_entity(self, entity: KnowledgeEntity, source_urls: list[str]) -> None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _INSERT_ENTITY_SQL,
                    (
                        entity.name,
                        entity.type.value,
                        entity.description,
                        json.dumps(entity.aliases, ensure_ascii=False),
                        entity.city,
                        entity.country,
                        json.dumps(source_urls, ensure_ascii=False),
                        to_db_time(utcnow()),
                    ),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"Entity insert failed for {entity.name!r}: {exc}",
                provider_name="sqlite",
            ) from exc

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def insert_document(self, document: KnowledgeDocument) -> int:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    _INSERT_DOCUMENT_SQL,
                    (
                        document.title,
                        document.content,
                        document.source,
                        json.dumps(document.embedding) if document.embedding is not None else None,
                        json.dumps(document.metadata, ensure_ascii=False, default=str),
                        document.chunk_index,
                        to_db_time(document.created_at),
                    ),
                )
                await db.commit()
                return int(cursor.lastrowid or 0)
        except (aiosqlite.Error, TypeError, ValueError) as exc:
            raise StorageError(
                message=f"Document insert failed for {document.title!r}: {exc}",
                provider_name="sqlite",
            ) from exc

    async def list_document_titles(self) -> list[str]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("SELECT title FROM documents")
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def search_documents(self, query: str, limit: int = 10) -> list[KnowledgeDocument]:
        pattern = f"%{query.lower().strip()}%"
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SEARCH_DOCUMENTS_SQL, (pattern, pattern, limit))
            rows = await cursor.fetchall()
        return [_row_to_document(row) for row in rows]

    # ------------------------------------------------------------------
    # Counts
    # ------------------------------------------------------------------

    async def count_documents(self) -> int:
        return await self._scalar("SELECT COUNT(*) FROM documents")

    async def count_entities(self) -> int:
        return await self._scalar("SELECT COUNT(*) FROM td_knowledge_entities")

    async def count_documents_with_embeddings(self) -> int:
        return await self._scalar("SELECT COUNT(*) FROM documents WHERE embedding IS NOT NULL")

    async def _scalar(self, sql: str) -> int:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(sql)
            row = await cursor.fetchone()
        return int(row[0]) if row else 0
