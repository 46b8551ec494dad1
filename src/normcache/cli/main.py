"""
CLI for the normalized response cache.

Commands:
    normcache config - Show current configuration
    normcache fingerprint PARAMS - Print the request-tier key for a JSON parameter list
    normcache version - Print version
"""

from __future__ import annotations

from typing import Annotated

import orjson
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from normcache import __version__
from normcache.config import Settings, clear_settings_cache, get_settings
from normcache.exceptions import FingerprintError
from normcache.fingerprint import canonical, fingerprint as compute_fingerprint
from normcache.logging import setup_logging

app = typer.Typer(
    name="normcache",
    help="Normalized response cache - inspect configuration and request keys",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except ValidationError as e:
        error_console.print(f"[red]{e}[/red]")
        return None


@app.callback()
def main_callback() -> None:
    """Configure logging from NORMCACHE_LOG_LEVEL before any command runs."""
    try:
        log_level = get_settings().LOG_LEVEL
    except ValidationError:
        # The config command reports invalid settings itself
        log_level = "WARNING"
    setup_logging(log_level)


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = _get_settings_safe()

    if settings is None:
        error_console.print("[red]Configuration is invalid.[/red]")
        error_console.print("Check NORMCACHE_* environment variables or your .env file.")
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.redacted_display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)


@app.command()
def fingerprint(
    params: Annotated[str, typer.Argument(help='JSON parameter list, e.g. \'[{"page": 2}]\'')],
    show_canonical: Annotated[
        bool,
        typer.Option("--canonical", "-c", help="Also print the canonical serialization"),
    ] = False,
) -> None:
    """Print the fingerprint used as the request-tier key for PARAMS."""
    try:
        value = orjson.loads(params)
    except orjson.JSONDecodeError as e:
        error_console.print(f"[red]Invalid JSON:[/red] {e}")
        raise typer.Exit(1)

    try:
        console.print(compute_fingerprint(value))
        if show_canonical:
            console.print(canonical(value).decode("utf-8"), markup=False)
    except FingerprintError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"normcache version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
