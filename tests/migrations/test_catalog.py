"""Tests for migration catalog discovery and integrity checks."""

import hashlib

import pytest

from composedb.exceptions import MigrationCatalogError, MigrationError
from composedb.migrations.runner import MIGRATIONS_DIR, apply_all, load_catalog

from tests.conftest import write_migration


def test_packaged_catalog():
    catalog = load_catalog()
    assert [m.version for m in catalog] == [1, 2, 3, 4]
    assert catalog[0].name == "create_composes"
    assert catalog[1].name == "rename_account_number"
    assert catalog[2].name == "account_number_not_empty"
    assert all(m.path.parent == MIGRATIONS_DIR for m in catalog)


def test_checksum_is_sha256_of_source():
    for m in load_catalog():
        assert m.checksum == hashlib.sha256(m.path.read_bytes()).hexdigest()


def test_custom_directory(tmp_path):
    write_migration(tmp_path, "m_002_second.py", "pass")
    write_migration(tmp_path, "m_001_first.py", "pass")
    write_migration(tmp_path, "helper.py", "pass")  # not a migration

    catalog = load_catalog(tmp_path)
    assert [(m.version, m.name) for m in catalog] == [(1, "first"), (2, "second")]


def test_gap_in_versions(tmp_path):
    write_migration(tmp_path, "m_001_first.py", "pass")
    write_migration(tmp_path, "m_003_third.py", "pass")

    with pytest.raises(MigrationCatalogError, match="expected version 2"):
        load_catalog(tmp_path)


def test_duplicate_versions(tmp_path):
    write_migration(tmp_path, "m_001_first.py", "pass")
    write_migration(tmp_path, "m_001_again.py", "pass")

    with pytest.raises(MigrationCatalogError):
        load_catalog(tmp_path)


def test_unparseable_name(tmp_path):
    write_migration(tmp_path, "m_first.py", "pass")

    with pytest.raises(MigrationCatalogError, match="m_first.py"):
        load_catalog(tmp_path)


def test_upgrade_must_be_async(tmp_path):
    (tmp_path / "m_001_sync.py").write_text("def upgrade(db):\n    pass\n")

    with pytest.raises(MigrationCatalogError, match="async def upgrade"):
        load_catalog(tmp_path)


def test_missing_directory(tmp_path):
    with pytest.raises(MigrationCatalogError, match="not found"):
        load_catalog(tmp_path / "missing")


@pytest.mark.asyncio
async def test_broken_catalog_never_touches_database(tmp_path):
    catalog = tmp_path / "catalog"
    write_migration(catalog, "m_002_orphan.py", "pass")
    target = tmp_path / "composes.db"

    with pytest.raises(MigrationError):
        await apply_all(target, catalog)

    assert not target.exists()
