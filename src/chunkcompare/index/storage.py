"""In-process SQLite store for embedding records."""

from __future__ import annotations

import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List

import numpy as np

from chunkcompare.models import StoredEmbedding


class SQLiteEmbeddingStore:
    """Keeps embeddings for the lifetime of the process.

    Defaults to an in-memory database; nothing is written to disk.
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self.db_path = db_path
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS embeddings (
                    id TEXT PRIMARY KEY,
                    text TEXT NOT NULL,
                    model TEXT NOT NULL,
                    embedding BLOB NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_embeddings_model ON embeddings(model)")

    def create(self, text: str, embedding: np.ndarray, model: str) -> StoredEmbedding:
        now = datetime.now(timezone.utc)
        record = StoredEmbedding(
            id=uuid.uuid4().hex,
            text=text,
            embedding=np.asarray(embedding, dtype="float32"),
            model=model,
            created_at=now,
            updated_at=now,
        )
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO embeddings(id, text, model, embedding, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.text,
                    record.model,
                    sqlite3.Binary(record.embedding.tobytes()),
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
        return record

    def find_by_id(self, record_id: str) -> StoredEmbedding | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM embeddings WHERE id = ?", (record_id,)
            ).fetchone()
        return _to_record(row) if row else None

    def find_all(
        self,
        *,
        model: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> List[StoredEmbedding]:
        """Return records in insertion order, optionally filtered and paged."""
        query = "SELECT * FROM embeddings"
        params: list = []
        if model:
            query += " WHERE model = ?"
            params.append(model)
        query += " ORDER BY rowid"
        if limit or offset:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit if limit else -1, offset or 0])

        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [_to_record(row) for row in rows]

    def delete(self, record_id: str) -> bool:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM embeddings WHERE id = ?", (record_id,))
        return cursor.rowcount > 0

    def count(self) -> int:
        with self._lock:
            return int(self._conn.execute("SELECT COUNT(*) FROM embeddings").fetchone()[0])


def _to_record(row: sqlite3.Row) -> StoredEmbedding:
    return StoredEmbedding(
        id=row["id"],
        text=row["text"],
        embedding=np.frombuffer(row["embedding"], dtype="float32"),
        model=row["model"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )
