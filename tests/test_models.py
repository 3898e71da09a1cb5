"""Tests for message and fragment models."""

import json

import pytest
from pydantic import ValidationError

from recallbot.errors import DeserializationError
from recallbot.memory.models import Message, RecalledMemory, Role, decode_fragment, encode_fragment


def test_message_is_immutable() -> None:
    msg = Message(role=Role.USER, content="hi")
    with pytest.raises(ValidationError):
        msg.content = "changed"


def test_message_role_from_string() -> None:
    msg = Message(role="assistant", content="hello")
    assert msg.role is Role.ASSISTANT
    assert msg.to_api() == {"role": "assistant", "content": "hello"}


def test_message_rejects_unknown_role() -> None:
    with pytest.raises(ValidationError):
        Message(role="robot", content="beep")


def test_fragment_blob_format() -> None:
    blob = encode_fragment([Message(role=Role.USER, content="a")])
    assert json.loads(blob) == [{"role": "user", "content": "a"}]


def test_decode_fragment() -> None:
    messages = decode_fragment('[{"role": "user", "content": "a"}, {"role": "assistant", "content": "b"}]')
    assert messages == [
        Message(role=Role.USER, content="a"),
        Message(role=Role.ASSISTANT, content="b"),
    ]


def test_decode_fragment_missing_content_defaults_empty() -> None:
    assert decode_fragment('[{"role": "user"}]') == [Message(role=Role.USER, content="")]


@pytest.mark.parametrize("blob", ["", "not json", '{"role": "user"}', "[1, 2]"])
def test_decode_fragment_rejects_malformed(blob: str) -> None:
    with pytest.raises(DeserializationError):
        decode_fragment(blob)


def test_recalled_memory_messages() -> None:
    memory = RecalledMemory(
        fragment=encode_fragment([Message(role=Role.USER, content="x")]),
        similarity_score=0.9,
    )
    assert memory.messages() == [Message(role=Role.USER, content="x")]
    assert memory.created_at is None
