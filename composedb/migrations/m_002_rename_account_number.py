"""Migration 002: Rename composes.account_id to account_number."""

from __future__ import annotations

import aiosqlite


async def upgrade(db: aiosqlite.Connection) -> None:
    await db.execute(
        "ALTER TABLE composes RENAME COLUMN account_id TO account_number"
    )
