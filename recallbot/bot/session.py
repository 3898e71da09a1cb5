"""Conversation session with long-term memory recall."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

from recallbot.config import settings
from recallbot.errors import EmbeddingError, PersistenceError
from recallbot.memory.context import assemble_context
from recallbot.memory.evaluator import Evaluation, evaluate_candidates
from recallbot.memory.models import Message, Role

if TYPE_CHECKING:
    from collections.abc import Sequence

    from recallbot.memory.models import RecalledMemory

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


class Completer(Protocol):
    async def complete(self, messages: Sequence[Message]) -> Message: ...


class Storage(Protocol):
    async def persist_memory(
        self, fragment: Sequence[Message], embedding: Sequence[float], conversation_id: int
    ) -> int: ...

    async def query_memories(
        self, embedding: Sequence[float], k: int | None = None
    ) -> list[RecalledMemory]: ...

    async def create_conversation(self, messages: Sequence[Message]) -> int: ...

    async def update_conversation(
        self, conversation_id: int, messages: Sequence[Message]
    ) -> bool: ...


def select_memorize_window(length: int, exchanges: int) -> int:
    """Start index covering the last *exchanges* user/assistant pairs."""
    return max(0, length - 2 * exchanges)


class ConversationSession:
    """One live conversation: history, memory recall, and memorization.

    The history starts with a single system message. ``respond`` is meant to
    be awaited by the chat loop, while ``memorize_in_background`` may overlap
    with later turns; it works on a copy of the history taken when called.
    """

    def __init__(
        self,
        storage: Storage,
        embedder: Embedder,
        completer: Completer,
        system_prompt: str | None = None,
    ) -> None:
        self.storage = storage
        self.embedder = embedder
        self.completer = completer
        self.messages: list[Message] = [
            Message(role=Role.SYSTEM, content=system_prompt or settings.system_prompt)
        ]
        self.conversation_id: int | None = None
        self._background: set[asyncio.Task[int]] = set()

    # -- Conversation lifecycle ------------------------------------------------

    async def new_conversation(self) -> int:
        """Create the conversation row before the first exchange."""
        self.conversation_id = await self.storage.create_conversation(list(self.messages))
        return self.conversation_id

    async def end_conversation(self) -> bool:
        """Save the full history. Failures are logged, never raised."""
        if self.conversation_id is None:
            logger.warning("No active conversation to save")
            return False
        try:
            return await self.storage.update_conversation(self.conversation_id, list(self.messages))
        except PersistenceError:
            logger.warning("Could not save conversation %d", self.conversation_id, exc_info=True)
            return False

    # -- Responding ------------------------------------------------------------

    async def recall(self, text: str) -> Evaluation:
        """Embed *text* and return the memories worth injecting.

        Raises:
            EmbeddingError: If *text* cannot be embedded.
        """
        embedding = await self.embedder.embed(text)
        try:
            candidates = await self.storage.query_memories(embedding)
        except Exception:
            logger.exception("Memory retrieval failed")
            return Evaluation()

        evaluation = evaluate_candidates(candidates)
        for error in evaluation.errors:
            logger.warning("Unreadable memory skipped: %s", error)
        return evaluation

    async def respond(self, user_input: str) -> str:
        """Answer *user_input* with recalled memories injected.

        The outgoing user message is kept in history even if completion
        fails, so it is resent with the next turn.

        Raises:
            EmbeddingError: Before history is touched.
            CompletionError: After the user message was appended.
        """
        evaluation = await self.recall(user_input)
        context = assemble_context(evaluation.messages)
        self.messages.append(Message(role=Role.USER, content=context.content + user_input))

        reply = await self.completer.complete(list(self.messages))
        self.messages.append(reply)
        return reply.content

    # -- Memorizing ------------------------------------------------------------

    def snapshot(self, exchanges: int) -> tuple[Message, ...]:
        """Immutable copy of the last *exchanges* exchanges of history."""
        start = select_memorize_window(len(self.messages), exchanges)
        return tuple(self.messages[start:])

    async def memorize(self, exchanges: int) -> int:
        """Store the last *exchanges* exchanges as memories.

        Returns the number of memories written. Errors are logged, not raised.
        """
        return await self._store(self.snapshot(exchanges), self.conversation_id)

    def memorize_in_background(self, exchanges: int) -> asyncio.Task[int]:
        """Schedule :meth:`memorize` without blocking the caller.

        The history is copied before this returns, so turns added while the
        task runs are not part of the memory.
        """
        task = asyncio.create_task(self._store(self.snapshot(exchanges), self.conversation_id))
        self._background.add(task)
        task.add_done_callback(self._memorize_done)
        return task

    async def wait_for_background(self) -> None:
        """Wait for pending background memorize tasks to finish."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def _memorize_done(self, task: asyncio.Task[int]) -> None:
        self._background.discard(task)
        if task.cancelled():
            logger.info("Background memorize cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background memorize crashed", exc_info=exc)

    async def _store(self, fragment: tuple[Message, ...], conversation_id: int | None) -> int:
        if conversation_id is None:
            logger.warning("No active conversation; nothing memorized")
            return 0
        if not fragment:
            return 0

        embeddings: list[list[float]] = []
        for message in fragment:
            try:
                embeddings.append(await self.embedder.embed(message.content))
            except EmbeddingError:
                logger.warning("Memorize aborted: embedding failed", exc_info=True)
                return 0

        stored = 0
        for embedding in embeddings:
            try:
                await self.storage.persist_memory(fragment, embedding, conversation_id)
            except PersistenceError:
                logger.warning(
                    "Memorize stopped after %d of %d memories",
                    stored,
                    len(embeddings),
                    exc_info=True,
                )
                return stored
            stored += 1

        logger.info(
            "Memorized %d message(s) for conversation %d", len(fragment), conversation_id
        )
        return stored
