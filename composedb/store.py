"""Compose Store — what was built, and for whom.

Every compose request a tenant submits is recorded here and kept
forever. All reads are scoped by account number: a compose owned by
another account looks exactly like one that does not exist.

The store assumes the schema was brought up to date by
`composedb.migrations.runner`. It never migrates on its own.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import timedelta
from pathlib import Path

import aiosqlite

from composedb.config import ComposeDBSettings
from composedb.db import connect
from composedb.exceptions import (
    ComposeConflictError,
    ComposeNotFoundError,
    SchemaVersionError,
    ValidationError,
)
from composedb.migrations.runner import get_schema_version
from composedb.types import ComposeRecord, parse_timestamp

# Oldest schema this module's queries are written against:
# account_number column with its non-empty constraint (migration 3).
SCHEMA_VERSION = 3

_COLUMNS = "job_id, request, created_at, account_number, org_id"


def _parse_job_id(job_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(job_id))
    except ValueError:
        raise ValidationError(f"Invalid compose id {job_id!r}: not a UUID") from None


def _row_to_record(row: aiosqlite.Row) -> ComposeRecord:
    return ComposeRecord(
        id=uuid.UUID(row["job_id"]),
        account_number=row["account_number"],
        org_id=row["org_id"],
        request=json.loads(row["request"]),
        created_at=parse_timestamp(row["created_at"]),
    )


class ComposeStore:
    """Tenant-scoped access to the `composes` table. SQLite-backed.

    Holds no state besides the database location: every call opens a
    short-lived connection and does a single round trip.
    """

    def __init__(self, db_path: str | Path, timeout: float = 5.0) -> None:
        self._db_path = db_path
        self._timeout = timeout

    async def initialize(self) -> None:
        """Check the database is reachable and migrated far enough."""
        async with connect(self._db_path, timeout=self._timeout):
            pass
        version = await get_schema_version(self._db_path)
        if version < SCHEMA_VERSION:
            raise SchemaVersionError(
                f"Database {self._db_path} is at schema version {version}, "
                f"compose store needs at least {SCHEMA_VERSION}; run migrations first"
            )

    async def insert_compose(
        self,
        job_id: str,
        account_number: str,
        org_id: str | None,
        request: bytes | str,
    ) -> None:
        """Record a new compose. `created_at` is set by the database clock."""
        parsed_id = _parse_job_id(job_id)
        if not account_number:
            raise ValidationError(f"Compose {job_id}: account number must not be empty")
        if isinstance(request, bytes):
            try:
                request = request.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ValidationError(f"Compose {job_id}: request is not UTF-8: {e}") from e
        # str input: json.loads rejects a leading BOM instead of storing it
        try:
            json.loads(request)
        except ValueError as e:
            raise ValidationError(f"Compose {job_id}: request is not valid JSON: {e}") from e

        async with connect(self._db_path, timeout=self._timeout) as db:
            try:
                await db.execute(
                    "INSERT INTO composes (job_id, request, account_number, org_id) "
                    "VALUES (?, ?, ?, ?)",
                    (str(parsed_id), request, account_number, org_id),
                )
            except sqlite3.IntegrityError as e:
                if "UNIQUE" in str(e):
                    raise ComposeConflictError(
                        f"Compose {parsed_id} already exists"
                    ) from e
                raise ValidationError(
                    f"Compose {parsed_id} for account {account_number!r} rejected: {e}"
                ) from e
            await db.commit()

    async def get_compose(self, job_id: str, account_number: str) -> ComposeRecord:
        """Fetch one compose owned by `account_number`."""
        try:
            parsed_id = _parse_job_id(job_id)
        except ValidationError:
            raise ComposeNotFoundError(
                f"Compose {job_id} not found for account {account_number!r}"
            ) from None

        async with connect(self._db_path, timeout=self._timeout) as db:
            async with db.execute(
                f"SELECT {_COLUMNS} FROM composes "
                "WHERE job_id = ? AND account_number = ?",
                (str(parsed_id), account_number),
            ) as cursor:
                row = await cursor.fetchone()

        if row is None:
            raise ComposeNotFoundError(
                f"Compose {job_id} not found for account {account_number!r}"
            )
        return _row_to_record(row)

    async def get_composes(
        self,
        account_number: str,
        limit: int,
        offset: int,
    ) -> tuple[list[ComposeRecord], int]:
        """One page of an account's composes, newest first, plus the total count."""
        if limit < 0 or offset < 0:
            raise ValidationError(
                f"limit and offset must be non-negative (got {limit}, {offset})"
            )

        composes: list[ComposeRecord] = []
        async with connect(self._db_path, timeout=self._timeout) as db:
            async with db.execute(
                f"SELECT {_COLUMNS} FROM composes WHERE account_number = ? "
                "ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
                (account_number, limit, offset),
            ) as cursor:
                async for row in cursor:
                    composes.append(_row_to_record(row))

            async with db.execute(
                "SELECT COUNT(*) FROM composes WHERE account_number = ?",
                (account_number,),
            ) as cursor:
                (count,) = await cursor.fetchone()

        return composes, count

    async def count_composes_since(
        self,
        account_number: str,
        since: timedelta,
    ) -> int:
        """Count an account's composes created at or after `now - since`.

        `now` is read from the database clock at query time.
        """
        modifier = f"{-since.total_seconds():.3f} seconds"
        async with connect(self._db_path, timeout=self._timeout) as db:
            async with db.execute(
                "SELECT COUNT(*) FROM composes "
                "WHERE account_number = ? AND created_at >= strftime('%Y-%m-%d %H:%M:%f', 'now', ?)",
                (account_number, modifier),
            ) as cursor:
                (count,) = await cursor.fetchone()
        return count

    def __repr__(self) -> str:
        return f"ComposeStore(db_path={str(self._db_path)!r})"


async def init_compose_store(config: ComposeDBSettings) -> ComposeStore:
    """Open and check a ComposeStore for the configured database."""
    store = ComposeStore(config.db_path, timeout=config.query_timeout)
    await store.initialize()
    return store
