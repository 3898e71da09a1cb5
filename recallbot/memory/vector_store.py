"""VectorStore — embedded conversation fragments in SQLite.

Each memory is two rows written in one transaction: the fragment itself in
``memory_fragments`` and its embedding in ``memory_embeddings`` (same id,
little-endian float32 blob). Similarity search is an exact scan that scores
every stored embedding with a ``cosine_similarity`` SQL function backed by
numpy.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite
import numpy as np

from recallbot.config import settings
from recallbot.db import connect, create_tables
from recallbot.errors import PersistenceError
from recallbot.memory.models import (
    Message,
    RecalledMemory,
    StoredMemory,
    decode_fragment,
    encode_fragment,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

logger = logging.getLogger(__name__)

_EMBEDDING_DTYPE = np.dtype("<f4")

_CREATE_TABLES = (
    """
    CREATE TABLE IF NOT EXISTS memory_fragments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        conversation_id INTEGER NOT NULL,
        fragment TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS memory_embeddings (
        fragment_id INTEGER PRIMARY KEY REFERENCES memory_fragments(id),
        dimensions INTEGER NOT NULL,
        embedding BLOB NOT NULL
    )
    """,
)

_QUERY = """
SELECT f.fragment,
       MAX(cosine_similarity(e.embedding, ?)) AS similarity,
       MAX(f.created_at) AS created_at
FROM memory_embeddings e
JOIN memory_fragments f ON f.id = e.fragment_id
WHERE e.dimensions = ?
GROUP BY f.fragment
ORDER BY similarity DESC
LIMIT ?
"""


def encode_embedding(embedding: Sequence[float]) -> bytes:
    """Pack an embedding as a little-endian float32 buffer."""
    vector = np.asarray(embedding, dtype=_EMBEDDING_DTYPE)
    if vector.ndim != 1 or vector.size == 0:
        raise ValueError("Embedding must be a non-empty 1-D vector")
    return vector.tobytes()


def decode_embedding(blob: bytes) -> list[float]:
    return np.frombuffer(blob, dtype=_EMBEDDING_DTYPE).astype(float).tolist()


def cosine_similarity(a: bytes | None, b: bytes | None) -> float | None:
    """Cosine similarity of two packed embeddings, in [-1, 1].

    Returns None when either side is missing or the lengths differ, and 0.0
    when either vector has zero norm.
    """
    if a is None or b is None:
        return None
    va = np.frombuffer(a, dtype=_EMBEDDING_DTYPE).astype(np.float64)
    vb = np.frombuffer(b, dtype=_EMBEDDING_DTYPE).astype(np.float64)
    if va.shape != vb.shape:
        return None
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / norm, -1.0, 1.0))


class VectorStore:
    """Persists embedded fragments and answers nearest-neighbour queries.

    Pass an explicit *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        db = await connect(self._db_path)
        await db.create_function("cosine_similarity", 2, cosine_similarity, deterministic=True)
        if not self._initialised:
            await create_tables(db, _CREATE_TABLES)
            self._initialised = True
        return db

    @staticmethod
    async def _stored_dimensions(db: aiosqlite.Connection) -> int | None:
        cursor = await db.execute("SELECT dimensions FROM memory_embeddings LIMIT 1")
        row = await cursor.fetchone()
        return row[0] if row else None

    # -- Write -----------------------------------------------------------------

    async def persist(
        self,
        fragment: Sequence[Message],
        embedding: Sequence[float],
        conversation_id: int,
    ) -> int:
        """Insert a fragment and its embedding as one transaction.

        Returns:
            The id shared by the fragment and embedding rows.

        Raises:
            PersistenceError: If anything fails. Nothing is left behind; the
                same holds when the calling task is cancelled mid-write.
        """
        try:
            vector = encode_embedding(embedding)
        except ValueError as exc:
            raise PersistenceError(str(exc)) from exc
        dimensions = len(vector) // _EMBEDDING_DTYPE.itemsize
        blob = encode_fragment(list(fragment))
        created_at = datetime.now(UTC).isoformat()

        try:
            db = await self._connect()
        except (aiosqlite.Error, OSError) as exc:
            raise PersistenceError(f"Could not open memory database: {exc}") from exc

        try:
            stored = await self._stored_dimensions(db)
            if stored is not None and stored != dimensions:
                raise PersistenceError(
                    f"Embedding has {dimensions} dimensions, store uses {stored}"
                )

            cursor = await db.execute(
                """
                INSERT INTO memory_fragments (conversation_id, fragment, created_at)
                VALUES (?, ?, ?)
                """,
                (conversation_id, blob, created_at),
            )
            memory_id = cursor.lastrowid
            await db.execute(
                """
                INSERT INTO memory_embeddings (fragment_id, dimensions, embedding)
                VALUES (?, ?, ?)
                """,
                (memory_id, dimensions, vector),
            )
            await db.commit()
        except aiosqlite.Error as exc:
            await db.rollback()
            raise PersistenceError(f"Failed to persist memory: {exc}") from exc
        except BaseException:
            await db.rollback()
            raise
        finally:
            await db.close()

        logger.debug(
            "Stored memory %d for conversation %d (%d messages)",
            memory_id,
            conversation_id,
            len(fragment),
        )
        return memory_id

    # -- Read ------------------------------------------------------------------

    async def query(self, embedding: Sequence[float], k: int | None = None) -> list[RecalledMemory]:
        """Return the *k* most similar fragments, best first.

        Fragments stored under several embeddings are returned once, with
        their highest similarity. An empty store or an empty query vector
        yields an empty list.
        """
        limit = settings.memory_query_limit if k is None else k
        if limit <= 0:
            return []
        try:
            vector = encode_embedding(embedding)
        except ValueError:
            logger.warning("Query embedding is empty; no matches")
            return []
        dimensions = len(vector) // _EMBEDDING_DTYPE.itemsize

        db = await self._connect()
        try:
            cursor = await db.execute("SELECT EXISTS(SELECT 1 FROM memory_embeddings)")
            (has_rows,) = await cursor.fetchone()
            if not has_rows:
                return []

            stored = await self._stored_dimensions(db)
            if stored != dimensions:
                logger.warning(
                    "Query embedding has %d dimensions, store uses %d; no matches",
                    dimensions,
                    stored,
                )
                return []

            cursor = await db.execute(_QUERY, (vector, dimensions, limit))
            rows = await cursor.fetchall()
        finally:
            await db.close()

        return [
            RecalledMemory(fragment=row[0], similarity_score=row[1], created_at=row[2])
            for row in rows
            if row[1] is not None
        ]

    async def get(self, memory_id: int) -> StoredMemory | None:
        """Fetch one stored memory by id, or None if not found."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                SELECT f.id, f.conversation_id, f.fragment, e.embedding, f.created_at
                FROM memory_fragments f
                JOIN memory_embeddings e ON e.fragment_id = f.id
                WHERE f.id = ?
                """,
                (memory_id,),
            )
            row = await cursor.fetchone()
        finally:
            await db.close()

        if not row:
            return None
        return StoredMemory(
            id=row[0],
            conversation_id=row[1],
            fragment=decode_fragment(row[2]),
            embedding=decode_embedding(row[3]),
            created_at=row[4],
        )

    async def count(self) -> int:
        """Number of stored embeddings."""
        db = await self._connect()
        try:
            cursor = await db.execute("SELECT COUNT(*) FROM memory_embeddings")
            (total,) = await cursor.fetchone()
            return total
        finally:
            await db.close()

    async def dimensions(self) -> int | None:
        """Embedding length fixed by the first stored memory, if any."""
        db = await self._connect()
        try:
            return await self._stored_dimensions(db)
        finally:
            await db.close()
