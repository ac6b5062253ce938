"""Command-line interface for Remlic."""

import asyncio
import sys
from typing import Tuple

import click
from rich.console import Console
from rich.table import Table

from remlic import __version__
from remlic.core.config import get_config
from remlic.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    MailError,
    StartupError,
    ValidationError,
)
from remlic.core.logging_setup import setup_logging
from remlic.core.models import AffectedRowsResult
from remlic.db import Database, close_database
from remlic.mail import EmailService
from remlic.startup import start

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="remlic")
def cli() -> None:
    """Remlic - resilient database and mail access."""
    setup_logging()


@cli.command("init-db")
def init_db() -> None:
    """Connect to the database, retrying until the startup policy gives up.

    Exits non-zero if the database stays unreachable, so it can gate a
    server start:

        remlic init-db && exec server
    """

    async def _run() -> None:
        try:
            await start()
        finally:
            await close_database()

    try:
        console.print("[cyan]Connecting to database...[/cyan]")
        asyncio.run(_run())
        console.print("[green]✓ Database connected[/green]")
    except StartupError as e:
        console.print(f"[red]✗ Failed to start: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Unexpected error: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.argument("sql")
@click.argument("params", nargs=-1)
def query(sql: str, params: Tuple[str, ...]) -> None:
    """Run one parameterized statement.

    PARAMS are bound as text. Cast placeholders for typed columns in the SQL.

    Example:
        remlic query "SELECT id, email FROM users WHERE id = $1::int" 42
    """

    async def _run():
        database = Database()
        try:
            return await database.query(sql, list(params))
        finally:
            await database.close()

    try:
        result = asyncio.run(_run())
    except (ConfigurationError, ValidationError) as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)
    except DatabaseError as e:
        console.print(f"[red]Query failed: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Unexpected error: {e}[/red]")
        sys.exit(1)

    if isinstance(result, AffectedRowsResult):
        console.print(f"[green]{result.command}: {result.affected_rows} row(s) affected[/green]")
        return

    if not result:
        console.print("[yellow]No rows returned[/yellow]")
        return

    table = Table()
    for column in result[0].keys():
        table.add_column(str(column))
    for row in result:
        table.add_row(*(str(value) for value in row.values()))
    console.print(table)
    console.print(f"{len(result)} row(s)")


@cli.command("verify-mail")
def verify_mail() -> None:
    """Connect to the mail server and verify the session."""

    async def _run() -> None:
        service = EmailService()
        try:
            await service.initialize()
        finally:
            await service.close()

    try:
        asyncio.run(_run())
        console.print("[green]✓ Mail server verified[/green]")
    except (ConfigurationError, MailError) as e:
        console.print(f"[red]✗ Mail verification failed: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Unexpected error: {e}[/red]")
        sys.exit(1)


@cli.command("send-mail")
@click.option("--to", "to", multiple=True, required=True, help="Recipient address")
@click.option("--subject", required=True, help="Subject line")
@click.option("--text", default=None, help="Plain-text body")
@click.option("--html", default=None, help="HTML body")
def send_mail(to: Tuple[str, ...], subject: str, text: str, html: str) -> None:
    """Send one message through the retrying transport."""

    async def _run():
        service = EmailService()
        try:
            payload = service.create_mail_options(
                to=list(to), subject=subject, text=text, html=html
            )
            return await service.send(payload)
        finally:
            await service.close()

    try:
        result = asyncio.run(_run())
        console.print(f"[green]✓ Sent {result.message_id}[/green]")
        if result.rejected:
            console.print(f"[yellow]Rejected: {', '.join(result.rejected)}[/yellow]")
    except (ConfigurationError, ValidationError) as e:
        console.print(f"[red]Invalid message: {e}[/red]")
        sys.exit(1)
    except MailError as e:
        console.print(f"[red]Send failed: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Unexpected error: {e}[/red]")
        sys.exit(1)


@cli.command("config")
def show_config() -> None:
    """Show effective configuration with secrets masked."""
    table = Table(title="Remlic configuration")
    table.add_column("Setting")
    table.add_column("Value")
    for name, value in get_config().redacted().items():
        table.add_row(name, "" if value is None else str(value))
    console.print(table)


@cli.command()
def version() -> None:
    """Show Remlic version."""
    console.print(f"Remlic version {__version__}")


if __name__ == "__main__":
    cli()
