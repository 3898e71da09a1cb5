"""Render recalled messages into the context prefix of the next user turn."""

from __future__ import annotations

from typing import TYPE_CHECKING

from recallbot.memory.models import Message, Role

if TYPE_CHECKING:
    from collections.abc import Iterable

MEMORY_HEADER = "Assistant, this is a previous conversation between us.\n"

MEMORY_INSTRUCTIONS = (
    "If this conversation seems relevant, you can use it to inform your response "
    "to my message. However, it is critical that you do not thank me for sharing it. "
    "It is also critical that you do not apologize.\n\n"
)


def assemble_context(messages: Iterable[Message]) -> Message:
    """Build a user message that replays recalled exchanges.

    System messages are left out. When nothing is injected the result has
    empty content, so appending the user's input yields a plain message.
    """
    lines = [MEMORY_HEADER]
    injected = 0
    for message in messages:
        if message.role is Role.SYSTEM:
            continue
        lines.append(f"{message.role.value} said {message.content} \n")
        injected += 1

    if not injected:
        return Message(role=Role.USER)

    lines.append(MEMORY_INSTRUCTIONS)
    return Message(role=Role.USER, content="".join(lines))
