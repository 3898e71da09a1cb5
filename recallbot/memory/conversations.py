"""ConversationStore — full chat histories, one row per session."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite

from recallbot.db import connect, create_tables
from recallbot.errors import PersistenceError
from recallbot.memory.models import Conversation, Message, decode_fragment, encode_fragment

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS conversations (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    messages   TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""


class ConversationStore:
    """Persists conversation histories in SQLite.

    Pass an explicit *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        db = await connect(self._db_path)
        if not self._initialised:
            await create_tables(db, (_CREATE_TABLE,))
            self._initialised = True
        return db

    # -- CRUD ------------------------------------------------------------------

    async def create(self, messages: Sequence[Message]) -> int:
        """Insert a new conversation. Returns its id."""
        now = datetime.now(UTC).isoformat()
        try:
            db = await self._connect()
            try:
                cursor = await db.execute(
                    "INSERT INTO conversations (messages, created_at, updated_at) VALUES (?, ?, ?)",
                    (encode_fragment(list(messages)), now, now),
                )
                await db.commit()
                conversation_id = cursor.lastrowid
            finally:
                await db.close()
        except (aiosqlite.Error, OSError) as exc:
            raise PersistenceError(f"Could not create conversation: {exc}") from exc

        logger.info("Started conversation %d", conversation_id)
        return conversation_id

    async def update(self, conversation_id: int, messages: Sequence[Message]) -> bool:
        """Replace the stored history. Returns True if a row was updated."""
        now = datetime.now(UTC).isoformat()
        try:
            db = await self._connect()
            try:
                cursor = await db.execute(
                    "UPDATE conversations SET messages = ?, updated_at = ? WHERE id = ?",
                    (encode_fragment(list(messages)), now, conversation_id),
                )
                await db.commit()
                updated = cursor.rowcount > 0
            finally:
                await db.close()
        except (aiosqlite.Error, OSError) as exc:
            raise PersistenceError(
                f"Could not update conversation {conversation_id}: {exc}"
            ) from exc

        if updated:
            logger.debug("Saved conversation %d (%d messages)", conversation_id, len(messages))
        return updated

    async def get(self, conversation_id: int) -> Conversation | None:
        """Fetch a conversation by id, or None if not found."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT id, messages FROM conversations WHERE id = ?", (conversation_id,)
            )
            row = await cursor.fetchone()
        finally:
            await db.close()

        if not row:
            return None
        return Conversation(id=row[0], messages=decode_fragment(row[1]))
