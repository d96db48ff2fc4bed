"""jobtrack-security: security and access control toolkit CLI."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Annotated

import asyncpg
import typer
from rich.console import Console
from rich.markup import escape

from . import __version__
from .auth import (
    ROLE_DESCRIPTIONS,
    AdminResolution,
    PersonalInfo,
    PostgresLegacyAdminRecords,
    PostgresTeamDirectory,
    TeamRole,
    TeamSchemaManager,
    password_suggestions,
    permissions_for,
)
from .config import ConfigValidationError, SecurityConfig, load_config
from .engine import SecurityEngine
from .headers import security_headers
from .sanitization import ContentClass, sanitize

ENV_DB_URL = "JOBTRACK_SECURITY_DB_URL"


def version_callback(value: bool) -> None:
    if value:
        print(__version__)
        raise typer.Exit()


app = typer.Typer(
    name="jobtrack-security", help="Password, sanitization and team access control checks"
)
console = Console()


@app.callback()
def main_callback(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version", callback=version_callback, is_eager=True, help="Show version and exit"
        ),
    ] = None,
) -> None:
    pass


def setup_logging(verbose: bool, quiet: bool, default: str = "INFO") -> None:
    """Configure logging based on verbosity flags."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.getLevelName(default.upper())

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("jobtrack_security").setLevel(level)


def _load_config_or_exit(config_file: Path | None) -> SecurityConfig:
    try:
        return load_config(config_file)
    except (FileNotFoundError, ConfigValidationError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None


STRENGTH_STYLES = {
    "very-weak": "red",
    "weak": "red",
    "fair": "yellow",
    "good": "yellow",
    "strong": "green",
    "very-strong": "green",
}


@app.command("check-password")
def check_password(
    password: str = typer.Argument(..., help="Password to evaluate"),
    email: Annotated[
        str | None, typer.Option("--email", "-e", help="Account email for personal info checks")
    ] = None,
    name: Annotated[str | None, typer.Option("--name", "-n", help="Account holder name")] = None,
    config_file: Annotated[
        Path | None, typer.Option("--config", "-c", help="TOML configuration file")
    ] = None,
    suggestions: bool = typer.Option(
        False, "--suggestions", "-s", help="Show password suggestions"
    ),
) -> None:
    """Score a password against the configured policy.

    Exits with status 1 when the password does not satisfy the policy.
    """
    engine = SecurityEngine(_load_config_or_exit(config_file))
    result = engine.validate_password(password, PersonalInfo(email=email, name=name))

    style = STRENGTH_STYLES[result.strength.value]
    console.print(f"Strength: [{style}]{result.strength.value}[/{style}] (score {result.score})")

    for error in result.errors:
        console.print(f"[red]✗[/red] {escape(error)}", highlight=False)
    for warning in result.warnings:
        console.print(f"[yellow]![/yellow] {escape(warning)}", highlight=False)

    if suggestions:
        console.print("\nSuggestions:")
        for tip in password_suggestions():
            console.print(f"  - {tip}", markup=False, highlight=False)

    if not result.is_valid:
        raise typer.Exit(1)
    console.print("[green]✓[/green] Password meets policy")


@app.command("sanitize")
def sanitize_command(
    value: str = typer.Argument(..., help="Raw input to sanitize"),
    kind: Annotated[
        ContentClass, typer.Option("--kind", "-k", help="Content class of the input")
    ] = ContentClass.TEXT,
) -> None:
    """Sanitize a value for the given content class and print the result."""
    console.print(sanitize(value, kind), markup=False, highlight=False)


@app.command()
def roles() -> None:
    """List team roles and the permissions they grant."""
    for role in TeamRole:
        console.print(f"[bold]{role.value}[/bold]: {ROLE_DESCRIPTIONS[role]}")
        console.print(f"  {', '.join(permissions_for(role))}", markup=False, highlight=False)


@app.command()
def headers() -> None:
    """Print the Content-Security-Policy and hardening response headers."""
    for name, value in security_headers().items():
        console.print(f"{name}: {value}", markup=False, highlight=False, soft_wrap=True)


@app.command("init-db")
def init_db(
    db_url: Annotated[
        str | None, typer.Option("--db", "-d", help="PostgreSQL connection URL")
    ] = None,
) -> None:
    """Create the team directory tables."""
    resolved = db_url or os.environ.get(ENV_DB_URL)
    if not resolved:
        console.print(f"[red]Error: provide --db or set {ENV_DB_URL}[/red]")
        raise typer.Exit(1)

    async def run_init() -> None:
        conn = await asyncpg.connect(resolved)
        try:
            manager = TeamSchemaManager()
            if await manager.schema_exists(conn):
                console.print("Team directory schema already present")
                return
            await manager.create_schema(conn)
            console.print("[green]✓[/green] Team directory schema initialized")
        finally:
            await conn.close()

    try:
        asyncio.run(run_init())
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None


@app.command("verify-admin")
def verify_admin(
    email: str = typer.Argument(..., help="Email to resolve"),
    db_url: Annotated[
        str | None, typer.Option("--db", "-d", help="PostgreSQL URL for the team directory")
    ] = None,
    config_file: Annotated[
        Path | None, typer.Option("--config", "-c", help="TOML configuration file")
    ] = None,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-error output"),
) -> None:
    """Resolve admin status through the directory and the remote verifier.

    Exits with status 1 when the email is not an admin.
    """
    config = _load_config_or_exit(config_file)
    setup_logging(verbose, quiet, config.log_level)
    resolved_db = db_url or os.environ.get(ENV_DB_URL)
    engine = SecurityEngine(config)

    async def run_verify() -> AdminResolution:
        conn = await asyncpg.connect(resolved_db) if resolved_db else None
        try:
            resolver = engine.admin_resolver(
                directory=PostgresTeamDirectory(conn) if conn else None,
                legacy_records=PostgresLegacyAdminRecords(conn) if conn else None,
            )
            return await resolver.resolve(email)
        finally:
            if conn:
                await conn.close()

    try:
        resolution = asyncio.run(run_verify())
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None

    role = resolution.role.value if resolution.role else "none"
    if resolution.is_admin:
        console.print(
            f"[green]✓[/green] admin (role: {role}, source: {resolution.source.value})"
        )
        return
    console.print(f"[red]✗[/red] not an admin (source: {resolution.source.value})")
    raise typer.Exit(1)


if __name__ == "__main__":
    app()
