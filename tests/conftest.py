"""Shared test fixtures: throwaway SQLite databases and raw SQL helpers."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio
import structlog

from composedb.migrations.runner import apply_all
from composedb.store import ComposeStore

ANR1 = "000001"
ANR2 = "000002"
ANR3 = "000003"

ORGID1 = "100000"


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture
def db_path():
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    yield path
    os.unlink(path)


@pytest_asyncio.fixture
async def store(db_path):
    await apply_all(db_path)
    s = ComposeStore(db_path)
    await s.initialize()
    return s


async def execute_sql(db_path: str, sql: str, params: tuple = ()) -> None:
    """Run one statement outside the library, the way an operator would."""
    async with aiosqlite.connect(db_path) as db:
        await db.execute(sql, params)
        await db.commit()


async def table_columns(db_path: str, table: str) -> list[str]:
    async with aiosqlite.connect(db_path) as db:
        async with db.execute(f"PRAGMA table_info({table})") as cursor:
            return [row[1] async for row in cursor]


def write_migration(directory: Path, filename: str, body: str) -> Path:
    """Drop a migration module into an ad-hoc catalog directory."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_text(
        "import aiosqlite\n\n\n"
        "async def upgrade(db: aiosqlite.Connection) -> None:\n"
        + "".join(f"    {line}\n" for line in body.strip().splitlines())
    )
    return path
