"""composedb CLI — schema maintenance for the compose database.

`composedb migrate` brings the database up to date, `composedb status`
shows which catalog entries are applied. Compose submission itself
happens in the service, not here.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from composedb.config import settings
from composedb.exceptions import ComposeDBError
from composedb.log import configure_logging
from composedb.migrations import runner

console = Console()

app = typer.Typer(
    name="composedb",
    help="composedb -- compose request history and its schema migrations.",
    no_args_is_help=True,
)


def _db_path(db: str) -> Path:
    return Path(db) if db else settings.db_path


def _migrations_dir(migrations_dir: str) -> Path | None:
    return Path(migrations_dir) if migrations_dir else settings.migrations_dir


def run_async(coro):
    """Run an async coroutine from sync CLI code."""
    return asyncio.run(coro)


@app.callback()
def main():
    """Configure logging before any subcommand runs."""
    configure_logging(settings.log_level, json=settings.log_json)


@app.command("migrate")
def migrate(
    steps: Optional[int] = typer.Option(None, "--steps", "-n", help="Apply at most N migrations (default: all)"),
    migrations_dir: str = typer.Option("", "--migrations-dir", help="Migration catalog directory"),
    db: str = typer.Option("", "--db", help="Database file (default: COMPOSEDB_DB_PATH)"),
):
    """Apply pending schema migrations."""
    target = _db_path(db)
    source = _migrations_dir(migrations_dir)

    try:
        if steps is None:
            applied = run_async(runner.apply_all(target, source))
        else:
            applied = run_async(runner.apply_steps(target, source, steps))
    except ComposeDBError as e:
        console.print(f"[red]Migration failed:[/red] {e}")
        raise typer.Exit(code=1)

    if applied:
        console.print(
            f"[green]Applied {len(applied)} migration(s):[/green] "
            + ", ".join(str(v) for v in applied)
        )
    elif steps is None:
        console.print("[dim]Schema already up to date.[/dim]")
    else:
        console.print("[dim]No migrations applied.[/dim]")
    console.print(f"Schema version: {run_async(runner.get_schema_version(target))}")


@app.command("status")
def status(
    migrations_dir: str = typer.Option("", "--migrations-dir", help="Migration catalog directory"),
    db: str = typer.Option("", "--db", help="Database file (default: COMPOSEDB_DB_PATH)"),
):
    """Show applied and pending migrations."""
    target = _db_path(db)

    try:
        catalog = runner.load_catalog(_migrations_dir(migrations_dir))
        current = run_async(runner.get_schema_version(target))
    except ComposeDBError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)

    table = Table(title=f"Migrations: {target}")
    table.add_column("Version", justify="right", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Checksum", style="dim", no_wrap=True)
    table.add_column("State")

    for m in catalog:
        state = "[green]applied[/green]" if m.version <= current else "[yellow]pending[/yellow]"
        table.add_row(str(m.version), m.name, m.checksum[:12], state)

    console.print(table)
    console.print(f"Schema version: {current} of {len(catalog)}")


@app.command("version")
def version_cmd():
    """Show composedb version."""
    from composedb import __version__
    console.print(f"composedb v{__version__}")
