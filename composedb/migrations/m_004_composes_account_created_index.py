"""Migration 004: Index composes by tenant and age."""

from __future__ import annotations

import aiosqlite


async def upgrade(db: aiosqlite.Connection) -> None:
    await db.execute(
        "CREATE INDEX idx_composes_account_created "
        "ON composes(account_number, created_at DESC)"
    )
