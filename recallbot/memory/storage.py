"""Persistent storage facade used by conversation sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from recallbot.memory.conversations import ConversationStore
from recallbot.memory.vector_store import VectorStore

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from recallbot.memory.models import Message, RecalledMemory


class MemoryStorage:
    """Memories and conversations in one SQLite database.

    Singleton accessed via ``MemoryStorage.get()``.  Pass an explicit *db_path*
    for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    _instance: MemoryStorage | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self.vectors = VectorStore(db_path)
        self.conversations = ConversationStore(db_path)

    @classmethod
    def get(cls) -> MemoryStorage:
        """Return the shared MemoryStorage instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    async def persist_memory(
        self,
        fragment: Sequence[Message],
        embedding: Sequence[float],
        conversation_id: int,
    ) -> int:
        return await self.vectors.persist(fragment, embedding, conversation_id)

    async def query_memories(
        self, embedding: Sequence[float], k: int | None = None
    ) -> list[RecalledMemory]:
        return await self.vectors.query(embedding, k)

    async def create_conversation(self, messages: Sequence[Message]) -> int:
        return await self.conversations.create(messages)

    async def update_conversation(self, conversation_id: int, messages: Sequence[Message]) -> bool:
        return await self.conversations.update(conversation_id, messages)
