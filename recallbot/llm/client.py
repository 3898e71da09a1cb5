"""Chat completion back-ends (OpenAI and Anthropic)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import anthropic
import openai

from recallbot.config import settings
from recallbot.errors import CompletionError
from recallbot.memory.models import Message, Role

if TYPE_CHECKING:
    from collections.abc import Sequence

    from recallbot.bot.session import Completer

logger = logging.getLogger(__name__)

_openai_client: openai.AsyncOpenAI | None = None
_anthropic_client: anthropic.AsyncAnthropic | None = None


def _get_openai_client() -> openai.AsyncOpenAI:
    """Lazily initialize the OpenAI client."""
    global _openai_client  # noqa: PLW0603
    if _openai_client is None:
        _openai_client = openai.AsyncOpenAI(api_key=settings.openai_api_key)
    return _openai_client


def _get_anthropic_client() -> anthropic.AsyncAnthropic:
    """Lazily initialize the Anthropic client."""
    global _anthropic_client  # noqa: PLW0603
    if _anthropic_client is None:
        _anthropic_client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
    return _anthropic_client


class OpenAICompleter:
    """Completes a conversation with the OpenAI chat completions API."""

    def __init__(self, model: str | None = None, max_tokens: int | None = None) -> None:
        self.model = model or settings.chat_model
        self.max_tokens = max_tokens or settings.max_tokens

    async def complete(self, messages: Sequence[Message]) -> Message:
        client = _get_openai_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[m.to_api() for m in messages],
            )
        except openai.OpenAIError as exc:
            raise CompletionError(f"OpenAI completion failed: {exc}") from exc

        if not response.choices:
            raise CompletionError("OpenAI returned no choices")
        return Message(role=Role.ASSISTANT, content=response.choices[0].message.content or "")


class AnthropicCompleter:
    """Completes a conversation with Claude.

    System messages are not valid turns in the Messages API, so they are
    joined into the ``system`` parameter instead.
    """

    def __init__(self, model: str | None = None, max_tokens: int | None = None) -> None:
        self.model = model or settings.claude_model
        self.max_tokens = max_tokens or settings.max_tokens

    async def complete(self, messages: Sequence[Message]) -> Message:
        client = _get_anthropic_client()
        system = "\n\n".join(m.content for m in messages if m.role is Role.SYSTEM)
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [m.to_api() for m in messages if m.role is not Role.SYSTEM],
        }
        if system:
            kwargs["system"] = system

        try:
            response = await client.messages.create(**kwargs)
        except anthropic.AnthropicError as exc:
            raise CompletionError(f"Anthropic completion failed: {exc}") from exc

        text = "".join(block.text for block in response.content if block.type == "text")
        return Message(role=Role.ASSISTANT, content=text)


def make_completer(provider: str | None = None) -> Completer:
    """Build the completer for *provider* (defaults to settings)."""
    name = (provider or settings.get_completion_provider()).lower()
    if name == "anthropic":
        return AnthropicCompleter()
    if name == "openai":
        return OpenAICompleter()
    raise ValueError(f"Unknown completion provider: {name!r}")
