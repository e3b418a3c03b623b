"""Tests for the composedb CLI."""

import pytest
from typer.testing import CliRunner

from composedb.cli.main import app

from tests.conftest import write_migration


@pytest.fixture
def runner():
    return CliRunner()


def test_migrate_all(runner, tmp_path):
    db = str(tmp_path / "composes.db")

    result = runner.invoke(app, ["migrate", "--db", db])
    assert result.exit_code == 0
    assert "Applied 4 migration(s)" in result.output
    assert "Schema version: 4" in result.output

    result = runner.invoke(app, ["migrate", "--db", db])
    assert result.exit_code == 0
    assert "already up to date" in result.output


def test_migrate_steps(runner, tmp_path):
    db = str(tmp_path / "composes.db")

    result = runner.invoke(app, ["migrate", "--steps", "1", "--db", db])
    assert result.exit_code == 0
    assert "Schema version: 1" in result.output


def test_migrate_zero_steps_applies_nothing(runner, tmp_path):
    db = str(tmp_path / "composes.db")

    result = runner.invoke(app, ["migrate", "--steps", "0", "--db", db])
    assert result.exit_code == 0
    assert "No migrations applied" in result.output
    assert "Schema version: 0" in result.output


def test_migrate_negative_steps_exits_nonzero(runner, tmp_path):
    result = runner.invoke(app, ["migrate", "--steps", "-1", "--db", str(tmp_path / "composes.db")])
    assert result.exit_code == 1
    assert "Migration failed" in result.output


def test_migrate_failure_exits_nonzero(runner, tmp_path):
    catalog = tmp_path / "catalog"
    write_migration(catalog, "m_001_broken.py", 'raise RuntimeError("boom")')

    result = runner.invoke(
        app,
        ["migrate", "--db", str(tmp_path / "composes.db"), "--migrations-dir", str(catalog)],
    )
    assert result.exit_code == 1
    assert "Migration failed" in result.output


def test_status(runner, tmp_path):
    db = str(tmp_path / "composes.db")
    runner.invoke(app, ["migrate", "--steps", "3", "--db", db])

    result = runner.invoke(app, ["status", "--db", db])
    assert result.exit_code == 0
    assert "pending" in result.output
    assert "applied" in result.output
    assert "Schema version: 3 of 4" in result.output


def test_status_bad_catalog(runner, tmp_path):
    result = runner.invoke(
        app, ["status", "--migrations-dir", str(tmp_path / "missing")]
    )
    assert result.exit_code == 1


def test_version(runner):
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "composedb v" in result.output
