"""Command line interface for sqlmigrate."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import get_settings
from .driver import Driver, DriverConfig
from .errors import MigrateError
from .history import NIL_VERSION
from .log import configure_logging
from .migrations import Migration, apply_migration
from .splitter import split_ranges

app = typer.Typer(help="Apply SQL migrations and track schema versions.")
console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    database_url: Optional[str] = typer.Option(
        None, "--database-url", help="SQLAlchemy URL; defaults to SQLMIGRATE_DATABASE_URL."
    ),
) -> None:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    ctx.obj = database_url or settings.database_url


def _load_driver(ctx: typer.Context) -> Driver:
    settings = get_settings()
    config = DriverConfig(
        migrations_table=settings.migrations_table,
        lock_timeout=settings.lock_timeout,
        strict_empty_result=settings.strict_empty_result,
    )
    try:
        return Driver.open(ctx.obj, config)
    except (MigrateError, ValueError) as exc:
        _fail(exc)


def _fail(exc: Exception) -> None:
    console.print(f"[bold red]error[/bold red]: {escape(str(exc))}")
    raise typer.Exit(code=1) from exc


@app.command()
def version(ctx: typer.Context) -> None:
    """Print the current schema version."""

    driver = _load_driver(ctx)
    try:
        record = driver.version()
    except MigrateError as exc:
        _fail(exc)
    finally:
        driver.close()

    if record.version == NIL_VERSION:
        console.print("[yellow]no migration has been applied[/yellow]")
        return
    suffix = " [bold red](dirty)[/bold red]" if record.dirty else ""
    console.print(f"{record.version}{suffix}")


@app.command()
def history(ctx: typer.Context) -> None:
    """List every recorded version."""

    driver = _load_driver(ctx)
    try:
        records = driver.versions()
    except MigrateError as exc:
        _fail(exc)
    finally:
        driver.close()

    table = Table("version", "dirty")
    for record in records:
        table.add_row(str(record.version), "yes" if record.dirty else "no")
    console.print(table)


@app.command()
def apply(
    ctx: typer.Context,
    migration_path: Path = typer.Argument(..., help="SQL file named <version>_<name>.sql."),
    version_override: Optional[int] = typer.Option(
        None, "--version", help="Version to record instead of the filename prefix."
    ),
) -> None:
    """Apply one migration file, marking its version dirty while it runs."""

    try:
        migration = Migration.from_path(migration_path, version=version_override)
    except (OSError, ValueError) as exc:
        _fail(exc)

    driver = _load_driver(ctx)
    try:
        apply_migration(driver, migration)
    except MigrateError as exc:
        _fail(exc)
    finally:
        driver.close()
    console.print(f"[bold green]Applied[/bold green] {migration_path.name} [dim](version {migration.version})[/dim]")


@app.command()
def run(
    ctx: typer.Context,
    migration_path: Path = typer.Argument(..., help="SQL file to execute."),
) -> None:
    """Execute a SQL file without touching the version history."""

    driver = _load_driver(ctx)
    try:
        with migration_path.open("rb") as handle:
            driver.run(handle)
    except (MigrateError, OSError) as exc:
        _fail(exc)
    finally:
        driver.close()
    console.print(f"[bold green]Executed[/bold green] {migration_path.name}")


@app.command()
def force(
    ctx: typer.Context,
    version_number: int = typer.Argument(..., metavar="VERSION"),
) -> None:
    """Record VERSION as cleanly applied, clearing a dirty flag."""

    driver = _load_driver(ctx)
    try:
        with driver.locker:
            driver.set_version(version_number, False)
    except MigrateError as exc:
        _fail(exc)
    finally:
        driver.close()
    console.print(f"Forced version [bold]{version_number}[/bold]")


@app.command("delete-version")
def delete_version(
    ctx: typer.Context,
    version_number: int = typer.Argument(..., metavar="VERSION"),
) -> None:
    """Remove VERSION from the history."""

    driver = _load_driver(ctx)
    try:
        driver.delete_version(version_number)
    except MigrateError as exc:
        _fail(exc)
    finally:
        driver.close()
    console.print(f"Deleted version [bold]{version_number}[/bold]")


@app.command()
def drop(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", help="Confirm dropping every table."),
) -> None:
    """Drop every table in the database."""

    if not yes:
        console.print("[yellow]Refusing to drop without --yes.[/yellow]")
        raise typer.Exit(code=1)

    driver = _load_driver(ctx)
    try:
        driver.drop()
    except MigrateError as exc:
        _fail(exc)
    finally:
        driver.close()
    console.print("[bold red]Dropped[/bold red] all tables")


@app.command()
def split(
    migration_path: Path = typer.Argument(..., help="SQL file to split."),
) -> None:
    """Print the statements a SQL file splits into."""

    try:
        statements = split_ranges(migration_path.read_bytes())
    except OSError as exc:
        _fail(exc)

    for stmt in statements:
        console.print(f"[dim]-- statement {stmt.index} (bytes {stmt.start}-{stmt.end})[/dim]")
        console.print(stmt.content.decode("utf-8", errors="replace"), markup=False, highlight=False)


if __name__ == "__main__":  # pragma: no cover
    app()
