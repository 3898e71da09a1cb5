"""Shared test fixtures."""

from collections.abc import Sequence
from pathlib import Path

import pytest

from recallbot.errors import CompletionError, EmbeddingError
from recallbot.memory.models import Message, Role
from recallbot.memory.storage import MemoryStorage


class FakeEmbedder:
    """Looks vectors up by text; unknown text gets *default*."""

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        default: Sequence[float] = (1.0, 0.0, 0.0),
    ) -> None:
        self.vectors = dict(vectors or {})
        self.default = list(default)
        self.fail_on: set[str] = set()
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.fail_on:
            raise EmbeddingError(f"cannot embed {text!r}")
        return list(self.vectors.get(text, self.default))


class FakeCompleter:
    """Replies with a fixed text and records every request."""

    def __init__(self, reply: str = "ok") -> None:
        self.reply = reply
        self.error: CompletionError | None = None
        self.calls: list[list[Message]] = []

    async def complete(self, messages: Sequence[Message]) -> Message:
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        return Message(role=Role.ASSISTANT, content=self.reply)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def storage(db_path: Path) -> MemoryStorage:
    """MemoryStorage backed by a temp database."""
    return MemoryStorage(db_path)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def completer() -> FakeCompleter:
    return FakeCompleter()
