"""Migration 001: Create the composes table.

Tenants are identified by `account_id` in this first generation.
"""

from __future__ import annotations

import aiosqlite


async def upgrade(db: aiosqlite.Connection) -> None:
    await db.execute("""
        CREATE TABLE composes (
            job_id TEXT PRIMARY KEY,
            request TEXT NOT NULL,
            created_at TEXT NOT NULL
                DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now')),
            account_id TEXT NOT NULL,
            org_id TEXT
        )
    """)
