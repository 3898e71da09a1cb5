"""Text embeddings via the OpenAI API."""

from __future__ import annotations

import logging

import openai

from recallbot.config import settings
from recallbot.errors import EmbeddingError

logger = logging.getLogger(__name__)

_client: openai.AsyncOpenAI | None = None


def _get_client() -> openai.AsyncOpenAI:
    """Return a lazily-initialised AsyncOpenAI singleton."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = openai.AsyncOpenAI(api_key=settings.openai_api_key)
    return _client


class OpenAIEmbedder:
    """Embeds text with an OpenAI embedding model."""

    def __init__(self, model: str | None = None) -> None:
        self.model = model or settings.embedding_model

    async def embed(self, text: str) -> list[float]:
        """Return the embedding vector for *text*.

        Raises:
            EmbeddingError: On API failure or when no vector comes back.
        """
        client = _get_client()
        try:
            response = await client.embeddings.create(model=self.model, input=[text])
        except openai.OpenAIError as exc:
            raise EmbeddingError(f"Embedding request failed: {exc}") from exc

        if not response.data or not response.data[0].embedding:
            raise EmbeddingError(f"No embedding returned for: {text[:80]!r}")
        return list(response.data[0].embedding)
