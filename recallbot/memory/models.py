"""Data models for messages, memories, and conversations."""

from __future__ import annotations

import json
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from recallbot.errors import DeserializationError


class Role(StrEnum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A single conversation message. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""

    def to_api(self) -> dict[str, str]:
        """Format for the chat completion APIs."""
        return {"role": self.role.value, "content": self.content}


_messages_adapter = TypeAdapter(list[Message])


def encode_fragment(messages: list[Message] | tuple[Message, ...]) -> str:
    """Serialize a fragment to the JSON blob stored in the database."""
    return json.dumps([m.to_api() for m in messages])


def decode_fragment(blob: str) -> list[Message]:
    """Parse a stored fragment blob back into messages.

    Raises:
        DeserializationError: If the blob is not a JSON list of messages.
    """
    try:
        return _messages_adapter.validate_json(blob)
    except ValidationError as exc:
        raise DeserializationError(
            f"Malformed conversation fragment: {exc.error_count()} error(s)",
            fragment=blob,
        ) from exc


class RecalledMemory(BaseModel):
    """A fragment matched by a similarity query. Not persisted."""

    model_config = ConfigDict(frozen=True)

    fragment: str
    similarity_score: float
    created_at: str | None = None

    def messages(self) -> list[Message]:
        return decode_fragment(self.fragment)


class StoredMemory(BaseModel):
    """A persisted fragment together with its embedding."""

    id: int
    conversation_id: int
    fragment: list[Message]
    embedding: list[float]
    created_at: str


class Conversation(BaseModel):
    """The full message history of one chat session."""

    id: int
    messages: list[Message]
