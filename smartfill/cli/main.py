#!/usr/bin/env python3
"""Main CLI entry point for smartfill."""
from __future__ import annotations

import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler

from ..config import get_settings
from .commands import config, match, normalize, suggest

console = Console()
err_console = Console(stderr=True)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


@click.group()
@click.option("--log-level", default=None, help="Logging level (defaults to SMARTFILL_LOG_LEVEL or WARNING)")
@click.version_option(version="0.1.0", prog_name="smartfill")
def cli(log_level):
    """
    smartfill - pick form options on behalf of a user profile.

    Normalize raw profiles, match form fields against them and inspect the
    configuration used for autofill passes.
    """
    _configure_logging(log_level or get_settings().log_level)


cli.add_command(normalize.normalize_command)
cli.add_command(match.match_command)
cli.add_command(suggest.suggest_command)
cli.add_command(config.config_command)


def main():
    """Entry point for the CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        err_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
