"""Document store backed by SQLite.

Every public method is a coroutine: the blocking sqlite3 work, row decoding
and vector scoring run in a worker thread bounded by ``timeout`` seconds.
Any storage failure, including an expired deadline, surfaces as
``PersistenceError``.
"""

from __future__ import annotations

import asyncio
import math
import sqlite3
from array import array
from functools import partial
from typing import Any, Callable, Iterable, Sequence, TypeVar

import orjson

from kb_assist.core.errors import EmbeddingDimensionError, PersistenceError
from kb_assist.core.logging import get_logger
from kb_assist.db.sqlite import SQLiteDatabase
from kb_assist.models.entities import NewDocument, SourceDocument
from kb_assist.utils.ids import new_document_id
from kb_assist.utils.text import tokenize
from kb_assist.utils.time import parse_timestamp, utc_now

logger = get_logger(__name__)

T = TypeVar("T")

# Bounds the size of the generated WHERE clause for very long queries.
MAX_SEARCH_TERMS = 32

_COLUMNS = "id, content, embedding, embedding_dim, metadata_json, created_at"


class DocumentStore:
    """Persist ``SourceDocument`` records and serve keyword and vector lookups."""

    def __init__(self, db: SQLiteDatabase, embedding_dim: int, timeout: float = 10.0) -> None:
        self.db = db
        self.embedding_dim = embedding_dim
        self.timeout = timeout

    def initialize(self) -> None:
        """Create the schema and refuse to run against mixed dimensionalities."""
        self.db.ensure_schema()
        rows = self.db.query(
            "SELECT DISTINCT embedding_dim FROM documents WHERE embedding_dim IS NOT NULL"
        )
        for row in rows:
            if row["embedding_dim"] != self.embedding_dim:
                raise EmbeddingDimensionError(self.embedding_dim, row["embedding_dim"])

    # Writes -----------------------------------------------------------

    async def insert(
        self,
        content: str,
        embedding: Sequence[float] | None,
        metadata: dict[str, Any] | None = None,
    ) -> SourceDocument:
        documents = await self.insert_many([NewDocument(content=content, embedding=_as_list(embedding), metadata=metadata or {})])
        return documents[0]

    async def insert_many(self, records: Sequence[NewDocument]) -> list[SourceDocument]:
        """Insert all records in one transaction; either every row lands or none."""
        for record in records:
            if record.embedding is not None and len(record.embedding) != self.embedding_dim:
                raise EmbeddingDimensionError(self.embedding_dim, len(record.embedding))
        documents = [
            SourceDocument(
                id=new_document_id(),
                content=record.content,
                embedding=_as_list(record.embedding),
                metadata=dict(record.metadata),
                created_at=utc_now(),
            )
            for record in records
        ]
        if documents:
            await self._run(partial(self._insert_rows, documents))
            logger.debug("Inserted %s documents", len(documents))
        return documents

    async def delete(self, document_id: str) -> bool:
        """Remove a document; unknown ids are not an error."""
        return await self._run(partial(self._delete_row, document_id))

    # Reads ------------------------------------------------------------

    async def get(self, document_id: str) -> SourceDocument | None:
        documents = await self._run(
            partial(self._fetch_documents, f"SELECT {_COLUMNS} FROM documents WHERE id = ?", [document_id])
        )
        return documents[0] if documents else None

    async def list_all(self) -> list[SourceDocument]:
        return await self._run(
            partial(self._fetch_documents, f"SELECT {_COLUMNS} FROM documents ORDER BY created_at DESC")
        )

    async def count(self) -> int:
        rows = await self._run(partial(self.db.query, "SELECT COUNT(*) AS total FROM documents"))
        return int(rows[0]["total"])

    async def lexical_search(self, query: str, limit: int) -> list[SourceDocument]:
        """Documents containing at least one query term, case-insensitively.

        A query without terms matches everything. Ranking is left to the
        retriever; among matches the most recent ``limit`` are returned.
        """
        terms = list(dict.fromkeys(token.casefold() for token in tokenize(query)))[:MAX_SEARCH_TERMS]
        sql = f"SELECT {_COLUMNS} FROM documents"
        params: list[Any] = []
        if terms:
            sql += " WHERE " + " OR ".join("casefold(content) LIKE ? ESCAPE '\\'" for _ in terms)
            params.extend(f"%{_escape_like(term)}%" for term in terms)
        sql += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)
        return await self._run(partial(self._fetch_documents, sql, params))

    async def vector_search(self, vector: Sequence[float], limit: int) -> list[tuple[SourceDocument, float]]:
        """Brute-force cosine similarity over every stored embedding."""
        if len(vector) != self.embedding_dim:
            raise EmbeddingDimensionError(self.embedding_dim, len(vector))
        return await self._run(partial(self._score_rows, list(vector), limit))

    # Internal helpers -------------------------------------------------

    async def _run(self, fn: Callable[[], T]) -> T:
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise PersistenceError(f"Document store did not respond within {self.timeout}s") from exc
        except sqlite3.Error as exc:
            raise PersistenceError(f"Document store failure: {exc}") from exc

    def _insert_rows(self, documents: Iterable[SourceDocument]) -> None:
        with self.db.transaction() as cursor:
            cursor.executemany(
                """
                INSERT INTO documents (id, content, embedding, embedding_dim, metadata_json, source_url, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        document.id,
                        document.content,
                        _vector_to_bytes(document.embedding),
                        len(document.embedding) if document.embedding is not None else None,
                        orjson.dumps(document.metadata).decode("utf-8"),
                        document.source_url,
                        document.created_at.isoformat(timespec="microseconds"),
                    )
                    for document in documents
                ],
            )

    def _fetch_documents(self, sql: str, params: Sequence[Any] | None = None) -> list[SourceDocument]:
        return [_row_to_document(row) for row in self.db.query(sql, params)]

    def _score_rows(self, vector: list[float], limit: int) -> list[tuple[SourceDocument, float]]:
        # Decoding and scoring stay on the worker thread, under the deadline
        scored = []
        for document in self._fetch_documents(f"SELECT {_COLUMNS} FROM documents WHERE embedding IS NOT NULL"):
            scored.append((document, _cosine(vector, document.embedding or [])))
        scored.sort(key=lambda item: item[1], reverse=True)
        return scored[:limit]

    def _delete_row(self, document_id: str) -> bool:
        cursor = self.db.execute("DELETE FROM documents WHERE id = ?", [document_id])
        return cursor.rowcount > 0


def _row_to_document(row: sqlite3.Row) -> SourceDocument:
    return SourceDocument(
        id=row["id"],
        content=row["content"],
        embedding=_bytes_to_vector(row["embedding"]),
        metadata=orjson.loads(row["metadata_json"]) if row["metadata_json"] else {},
        created_at=parse_timestamp(row["created_at"]),
    )


def _vector_to_bytes(vector: Sequence[float] | None) -> bytes | None:
    if vector is None:
        return None
    return array("d", vector).tobytes()


def _bytes_to_vector(blob: bytes | None) -> list[float] | None:
    if blob is None:
        return None
    floats = array("d")
    floats.frombytes(blob)
    return list(floats)


def _as_list(vector: Sequence[float] | None) -> list[float] | None:
    return None if vector is None else [float(value) for value in vector]


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _cosine(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


__all__ = ["DocumentStore", "MAX_SEARCH_TERMS"]
