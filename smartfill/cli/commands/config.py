"""Configuration display command."""
from __future__ import annotations

import os

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ...config import ENV_PREFIX, get_settings

console = Console()


@click.group(name="config")
def config_command():
    """
    Inspect smartfill configuration.

    Settings come from SMARTFILL_* environment variables.
    """
    pass


@config_command.command(name="show")
def show_config():
    """Show the effective configuration."""
    settings = get_settings()

    console.print(Panel("[bold cyan]Current Configuration[/bold cyan]", border_style="cyan"))
    console.print()

    table = Table(border_style="blue")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="yellow")
    table.add_column("Environment", style="dim")
    for name, value in settings.to_dict().items():
        variable = f"{ENV_PREFIX}{name.upper()}"
        marker = variable if variable in os.environ else ""
        table.add_row(name, str(value), marker)
    console.print(table)

    thresholds = settings.stage_thresholds()
    console.print(
        f"[dim]Stage minimums:[/dim] direct {thresholds.direct:.2f}, category {thresholds.category:.2f}, "
        f"semantic {thresholds.semantic:.2f}, remote {thresholds.remote:.2f}"
    )


@config_command.command(name="get")
@click.argument("key")
def get_config(key: str):
    """Get a configuration value."""
    values = get_settings().to_dict()
    if key in values:
        console.print(f"[cyan]{key}[/cyan] = [yellow]{values[key]}[/yellow]")
    else:
        console.print(f"[red]Error:[/red] Key '[cyan]{key}[/cyan]' not found in configuration")
        raise SystemExit(1)
