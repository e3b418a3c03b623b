"""Migration 003: Require a non-empty account_number.

SQLite cannot add a CHECK constraint to an existing table, so the
table is rebuilt and its rows (rowids included) copied across. Rows
with an empty account_number make this migration fail.
"""

from __future__ import annotations

import aiosqlite


async def upgrade(db: aiosqlite.Connection) -> None:
    await db.execute("""
        CREATE TABLE composes_new (
            job_id TEXT PRIMARY KEY,
            request TEXT NOT NULL,
            created_at TEXT NOT NULL
                DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now')),
            account_number TEXT NOT NULL CHECK (account_number <> ''),
            org_id TEXT
        )
    """)
    await db.execute(
        "INSERT INTO composes_new "
        "(rowid, job_id, request, created_at, account_number, org_id) "
        "SELECT rowid, job_id, request, created_at, account_number, org_id "
        "FROM composes"
    )
    await db.execute("DROP TABLE composes")
    await db.execute("ALTER TABLE composes_new RENAME TO composes")
