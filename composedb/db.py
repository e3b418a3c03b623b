"""Connection helper: opens aiosqlite connections with uniform error mapping."""

from __future__ import annotations

import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from composedb.exceptions import ConnectivityError


@asynccontextmanager
async def connect(
    db_path: str | Path,
    *,
    timeout: float = 5.0,
    create: bool = False,
    autocommit: bool = False,
) -> AsyncIterator[aiosqlite.Connection]:
    """Open a connection to the database file at `db_path`.

    With `create=False` a missing file is a ConnectivityError instead of
    a silently created empty database. `autocommit=True` disables the
    sqlite3 module's implicit transactions so callers can issue
    BEGIN/SAVEPOINT themselves.
    """
    path = Path(db_path).absolute()
    target = f"{path.as_uri()}?mode={'rwc' if create else 'rw'}"
    kwargs: dict = {"timeout": timeout, "uri": True}
    if autocommit:
        kwargs["isolation_level"] = None

    try:
        db = await aiosqlite.connect(target, **kwargs)
    except sqlite3.OperationalError as e:
        raise ConnectivityError(f"Cannot open database {path}: {e}") from e

    try:
        db.row_factory = aiosqlite.Row
        yield db
    finally:
        await db.close()
