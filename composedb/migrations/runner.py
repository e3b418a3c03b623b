"""Migration runner — brings a database up to the latest schema.

Migrations are Python modules named `m_NNN_description.py`, where NNN is
a zero-padded version number equal to the module's position in the
catalog. Each must define an `async def upgrade(db: aiosqlite.Connection)`
function.

A run takes SQLite's reserved lock with BEGIN IMMEDIATE and keeps it for
the whole batch, so concurrent runners queue up behind each other. Every
step runs under its own SAVEPOINT together with the version bump: a failing
step is undone on its own and the steps before it are committed.
"""

from __future__ import annotations

import hashlib
import importlib
import importlib.util
import inspect
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, Awaitable, Callable

import aiosqlite
import structlog

from composedb.config import settings
from composedb.db import connect
from composedb.exceptions import MigrationCatalogError, MigrationError, ValidationError


MIGRATIONS_DIR = Path(__file__).parent
MIGRATION_PREFIX = "m_"
STATE_TABLE = "schema_migrations"

_SAVEPOINT = "composedb_migration"

_logger = structlog.get_logger()


@dataclass(frozen=True)
class Migration:
    """One catalog entry."""

    version: int
    name: str
    path: Path
    checksum: str
    upgrade: Callable[[aiosqlite.Connection], Awaitable[None]]


# ── Catalog ────────────────────────────────────────────────────


def _import_migration(directory: Path, mf: Path) -> ModuleType:
    if directory.resolve() == MIGRATIONS_DIR.resolve():
        return importlib.import_module(f"composedb.migrations.{mf.stem}")

    spec = importlib.util.spec_from_file_location(f"_composedb_migration_{mf.stem}", mf)
    if spec is None or spec.loader is None:
        raise MigrationCatalogError(f"Cannot load migration module {mf}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def load_catalog(migrations_dir: str | Path | None = None) -> list[Migration]:
    """Discover and check the migration catalog, ordered by version.

    Versions must run 1..N without gaps or duplicates, so a renumbered or
    reordered catalog is caught before anything touches the database.
    Edits to already-applied entries are caught by the applied-prefix
    checksum when a run starts.
    """
    directory = Path(migrations_dir) if migrations_dir else MIGRATIONS_DIR
    if not directory.is_dir():
        raise MigrationCatalogError(f"Migrations directory not found: {directory}")

    migrations: list[Migration] = []
    for mf in directory.glob(f"{MIGRATION_PREFIX}*.py"):
        # m_001_description.py -> 1
        parts = mf.stem.split("_")
        try:
            version = int(parts[1])
        except (IndexError, ValueError):
            raise MigrationCatalogError(
                f"Cannot parse a version number from {mf.name}"
            ) from None

        module = _import_migration(directory, mf)
        upgrade = getattr(module, "upgrade", None)
        if not inspect.iscoroutinefunction(upgrade):
            raise MigrationCatalogError(
                f"{mf.name} does not define 'async def upgrade(db)'",
                version=version,
            )

        migrations.append(Migration(
            version=version,
            name="_".join(parts[2:]) or mf.stem,
            path=mf,
            checksum=hashlib.sha256(mf.read_bytes()).hexdigest(),
            upgrade=upgrade,
        ))

    migrations.sort(key=lambda m: (m.version, m.path.name))
    for position, migration in enumerate(migrations, start=1):
        if migration.version != position:
            raise MigrationCatalogError(
                f"Migration catalog out of sequence: expected version {position}, "
                f"found {migration.path.name}",
                version=migration.version,
            )

    return migrations


def catalog_checksum(migrations: list[Migration]) -> str:
    """Checksum over a run of catalog entries, in order."""
    digest = hashlib.sha256()
    for migration in migrations:
        digest.update(migration.checksum.encode())
    return digest.hexdigest()


# ── Version state ──────────────────────────────────────────────


async def _ensure_state_table(db: aiosqlite.Connection) -> tuple[int, str]:
    """Create the single-row version table if needed.

    Returns the version and the checksum of the migrations applied so far.
    """
    await db.execute(
        f"CREATE TABLE IF NOT EXISTS {STATE_TABLE} ("
        "id INTEGER PRIMARY KEY CHECK (id = 1), "
        "version INTEGER NOT NULL, "
        "checksum TEXT NOT NULL DEFAULT '')"
    )
    await db.execute(f"INSERT OR IGNORE INTO {STATE_TABLE} (id, version, checksum) VALUES (1, 0, '')")
    async with db.execute(f"SELECT version, checksum FROM {STATE_TABLE} WHERE id = 1") as cursor:
        row = await cursor.fetchone()
    return row[0], row[1]


async def get_schema_version(target: str | Path) -> int:
    """Get the current schema version from the database (0 if never migrated)."""
    if not Path(target).exists():
        return 0

    async with connect(target, timeout=settings.query_timeout) as db:
        async with db.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (STATE_TABLE,),
        ) as cursor:
            if await cursor.fetchone() is None:
                return 0
        async with db.execute(f"SELECT version FROM {STATE_TABLE} WHERE id = 1") as cursor:
            row = await cursor.fetchone()
        return row[0] if row is not None else 0


async def pending_migrations(
    target: str | Path,
    migrations_dir: str | Path | None = None,
) -> list[Migration]:
    """Catalog entries not yet applied to `target`."""
    catalog = load_catalog(migrations_dir)
    current = await get_schema_version(target)
    return catalog[current:]


# ── Apply ──────────────────────────────────────────────────────


async def _apply(
    target: str | Path,
    migrations_dir: str | Path | None,
    steps: int | None,
    log: Any,
    lock_timeout: float | None,
) -> list[int]:
    catalog = load_catalog(migrations_dir)
    log = log.bind(target=str(target))
    applied: list[int] = []

    timeout = settings.lock_timeout if lock_timeout is None else lock_timeout
    async with connect(target, timeout=timeout, create=True, autocommit=True) as db:
        # Blocks (up to the busy timeout) while another runner holds the lock
        await db.execute("BEGIN IMMEDIATE")
        try:
            current, applied_checksum = await _ensure_state_table(db)
            if current > len(catalog):
                raise MigrationError(
                    f"Database is at schema version {current} but the catalog "
                    f"only knows {len(catalog)} migrations",
                    version=current,
                )
            if current and applied_checksum != catalog_checksum(catalog[:current]):
                raise MigrationCatalogError(
                    f"Migrations 1..{current} were changed after being applied "
                    "(checksum mismatch); add a new migration instead",
                    version=current,
                )

            pending = catalog[current:]
            if steps is not None:
                pending = pending[:steps]

            if current == len(catalog):
                log.info("migrations_up_to_date", version=current)

            for migration in pending:
                log.info(
                    "migration_applying",
                    version=migration.version,
                    name=migration.name,
                )
                await db.execute(f"SAVEPOINT {_SAVEPOINT}")
                try:
                    await migration.upgrade(db)
                    await db.execute(
                        f"UPDATE {STATE_TABLE} SET version = ?, checksum = ? WHERE id = 1",
                        (migration.version, catalog_checksum(catalog[:migration.version])),
                    )
                except Exception as e:
                    if db.in_transaction:
                        await db.execute(f"ROLLBACK TO {_SAVEPOINT}")
                        await db.execute(f"RELEASE {_SAVEPOINT}")
                        await db.execute("COMMIT")
                    log.error(
                        "migration_failed",
                        version=migration.version,
                        name=migration.name,
                        error=str(e),
                    )
                    raise MigrationError(
                        f"Migration {migration.version} ({migration.name}) failed: {e}",
                        version=migration.version,
                    ) from e
                await db.execute(f"RELEASE {_SAVEPOINT}")
                applied.append(migration.version)
                log.info(
                    "migration_applied",
                    version=migration.version,
                    name=migration.name,
                )

            await db.execute("COMMIT")
        except Exception:
            if db.in_transaction:
                await db.execute("ROLLBACK")
            raise

    return applied


async def apply_steps(
    target: str | Path,
    migrations_dir: str | Path | None,
    n: int,
    logger: Any = None,
    *,
    lock_timeout: float | None = None,
) -> list[int]:
    """Apply the next `n` pending migrations. Returns applied version numbers.

    Applying fewer than `n` (or none) because the catalog ran out is not
    an error.
    """
    if n < 0:
        raise ValidationError(f"Cannot apply a negative number of migrations: {n}")
    return await _apply(target, migrations_dir, n, logger or _logger, lock_timeout)


async def apply_all(
    target: str | Path,
    migrations_dir: str | Path | None = None,
    logger: Any = None,
    *,
    lock_timeout: float | None = None,
) -> list[int]:
    """Apply all pending migrations. Returns list of applied version numbers."""
    return await _apply(target, migrations_dir, None, logger or _logger, lock_timeout)
