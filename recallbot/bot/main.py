"""Recallbot interactive chat entry point."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from recallbot.bot.session import ConversationSession
from recallbot.config import settings
from recallbot.llm.client import make_completer
from recallbot.llm.embeddings import OpenAIEmbedder
from recallbot.memory.storage import MemoryStorage

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

EXPLANATION = """Welcome to Recallbot. This is a normal chat bot conversation with one exception.
You can use the reserved word memorize followed by a number n to tell the bot
to create a memory of the last n (prompt, response) pairs."""

FALLBACK_REPLY = "Uh oh, my brain doesn't seem to be working. You can try again, but I might be a goner."


def parse_memorize_command(text: str, default: int) -> tuple[int, bool] | None:
    """Parse ``memorize [n]``.

    Returns None for ordinary input, otherwise ``(exchanges, valid)`` where
    *valid* is False when *n* was given but is not a non-negative integer
    (the default is used then).
    """
    parts = text.split(maxsplit=1)
    if not parts or parts[0].lower() != "memorize":
        return None
    if len(parts) == 1:
        return default, True
    try:
        exchanges = int(parts[1].strip())
    except ValueError:
        return default, False
    if exchanges < 0:
        return default, False
    return exchanges, True


async def read_line(prompt: str) -> str | None:
    """Read one line from stdin without blocking the event loop.

    Returns None at end of input. The reader thread is a daemon so a
    pending prompt never keeps the process alive on shutdown.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str | None] = loop.create_future()

    def _deliver(line: str | None) -> None:
        if not future.done():
            future.set_result(line)

    def _read() -> None:
        try:
            line: str | None = input(prompt)
        except EOFError:
            line = None
        loop.call_soon_threadsafe(_deliver, line)

    threading.Thread(target=_read, name="stdin-reader", daemon=True).start()
    return await future


async def chat(
    session: ConversationSession,
    *,
    read: Callable[[str], Awaitable[str | None]] = read_line,
    write: Callable[[str], None] = print,
) -> None:
    """Run the read/respond loop until end of input or cancellation."""
    await session.new_conversation()
    write(EXPLANATION)

    try:
        while True:
            line = await read("User: ")
            if line is None:
                break
            text = line.strip()
            if not text:
                continue

            command = parse_memorize_command(text, settings.memorize_default_exchanges)
            if command is not None:
                exchanges, valid = command
                if not valid:
                    write("Invalid number for memorize. Using default value.")
                session.memorize_in_background(exchanges)
                continue

            try:
                reply = await session.respond(text)
            except Exception:
                logger.exception("Error generating response")
                write(f"Recallbot: {FALLBACK_REPLY}")
                continue
            write(f"Recallbot: {reply}")
    finally:
        await session.wait_for_background()
        await session.end_conversation()
        write("\nGoodbye!")


def build_session(db_path: Path | None = None) -> ConversationSession:
    """Wire a session to the configured database and providers."""
    storage = MemoryStorage(db_path) if db_path else MemoryStorage.get()
    return ConversationSession(storage, OpenAIEmbedder(), make_completer())


async def run(db_path: Path | None = None) -> None:
    session = build_session(db_path)
    task = asyncio.current_task()
    loop = asyncio.get_running_loop()
    if task is not None:
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signal.SIGTERM, task.cancel)
    logger.info("Starting Recallbot with %s completions", settings.get_completion_provider())
    await chat(session)


def main(argv: list[str] | None = None) -> None:
    """Start the interactive chat."""
    parser = argparse.ArgumentParser(description="Chat with long-term memory.")
    parser.add_argument("--database", type=Path, help="SQLite database path")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    args = parser.parse_args(argv)

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, args.log_level.upper(), logging.INFO),
    )

    with contextlib.suppress(KeyboardInterrupt, asyncio.CancelledError):
        asyncio.run(run(args.database))


if __name__ == "__main__":
    main()
