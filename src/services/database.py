import json
import uuid
import aiosqlite
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional
import logging

from core.entities import UNSET

logger = logging.getLogger(__name__)


def server_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _encode_default(value: Any) -> Any:
    if value is UNSET:
        raise ValueError("Refusing to store an unset field")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_document(data: Dict[str, Any]) -> str:
    return json.dumps(data, default=_encode_default, ensure_ascii=False)


def deep_merge(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """Merge nested mappings; lists and scalars in `patch` replace."""
    merged = dict(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class DocumentStore:
    """
    Collection/document JSON store on SQLite.
    Writes are last-write-wins; there is no optimistic concurrency check.
    """

    def __init__(self, path: str):
        self.path = path
        self._initialized = False

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        conn = await aiosqlite.connect(self.path)
        await conn.execute("PRAGMA journal_mode=WAL;")
        try:
            yield conn
        finally:
            await conn.close()

    async def init_tables(self) -> None:
        """Initialize the documents table."""
        if self._initialized:
            return
        async with self.connect() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (collection, id)
                )
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection)
            """)
            await conn.commit()
        self._initialized = True
        logger.info("Document store initialized")

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        await self.init_tables()
        async with self.connect() as conn:
            cursor = await conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )
            row = await cursor.fetchone()
        return json.loads(row[0]) if row else None

    async def list(self, collection: str) -> List[Dict[str, Any]]:
        """All documents of a collection, each with its `id`, oldest first."""
        await self.init_tables()
        async with self.connect() as conn:
            cursor = await conn.execute(
                "SELECT id, data FROM documents WHERE collection = ? ORDER BY rowid",
                (collection,),
            )
            rows = await cursor.fetchall()
        return [{"id": row[0], **json.loads(row[1])} for row in rows]

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex[:20]
        await self.set(collection, doc_id, data)
        return doc_id

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: Dict[str, Any],
        merge: bool = False,
    ) -> None:
        await self.init_tables()
        async with self.connect() as conn:
            if merge:
                cursor = await conn.execute(
                    "SELECT data FROM documents WHERE collection = ? AND id = ?",
                    (collection, doc_id),
                )
                row = await cursor.fetchone()
                if row:
                    data = deep_merge(json.loads(row[0]), data)

            await conn.execute(
                """
                INSERT INTO documents (collection, id, data) VALUES (?, ?, ?)
                ON CONFLICT (collection, id) DO UPDATE SET data = excluded.data
                """,
                (collection, doc_id, encode_document(data)),
            )
            await conn.commit()

    async def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None:
        """Top-level field update of an existing document."""
        existing = await self.get(collection, doc_id)
        if existing is None:
            raise KeyError(f"{collection}/{doc_id} does not exist")
        await self.set(collection, doc_id, {**existing, **patch})

    async def delete(self, collection: str, doc_id: str) -> bool:
        await self.init_tables()
        async with self.connect() as conn:
            cursor = await conn.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )
            await conn.commit()
            return cursor.rowcount > 0
