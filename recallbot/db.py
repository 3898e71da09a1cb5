"""Async SQLite connections for the memory database.

Every store opens a short-lived connection per operation through
:func:`connect`, so concurrent writers (background memorize, conversation
saves) only ever contend at transaction boundaries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite

from recallbot.config import settings

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path


async def connect(db_path: Path | None = None) -> aiosqlite.Connection:
    """Open a connection with WAL mode, busy timeout and foreign keys.

    *db_path* overrides ``settings.database_path`` (test isolation).
    """
    path = db_path or settings.database_path
    path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(path))
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA busy_timeout=5000")
    await db.execute("PRAGMA foreign_keys=ON")
    return db


async def create_tables(db: aiosqlite.Connection, statements: Iterable[str]) -> None:
    """Run ``CREATE TABLE IF NOT EXISTS`` statements and commit."""
    for statement in statements:
        await db.execute(statement)
    await db.commit()
