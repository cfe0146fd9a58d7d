"""Profile normalization command."""
from __future__ import annotations

import json

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ...profile import normalize
from . import load_json

console = Console()


@click.command(name="normalize")
@click.argument("profile_path", metavar="PROFILE")
@click.option("--json", "as_json", is_flag=True, help="Print the canonical profile as JSON")
@click.option("--all", "show_all", is_flag=True, help="Include empty leaves")
def normalize_command(profile_path: str, as_json: bool, show_all: bool):
    """
    Normalize a raw profile JSON file into the canonical profile.

    Use '-' to read the profile from stdin.
    """
    profile = normalize(load_json(profile_path))

    if as_json:
        click.echo(json.dumps(profile.to_dict(), indent=2, ensure_ascii=False, default=str))
        return

    console.print(Panel("[bold cyan]Canonical Profile[/bold cyan]", border_style="cyan"))
    table = Table(show_header=True, header_style="bold cyan", border_style="cyan")
    table.add_column("Leaf", style="cyan")
    table.add_column("Value", style="yellow")
    table.add_column("Confidence", justify="right")
    table.add_column("Source key", style="dim")

    for path, leaf in profile.leaves(present_only=not show_all):
        value = ", ".join(str(item) for item in leaf.value) if isinstance(leaf.value, tuple) else leaf.value
        table.add_row(path, "" if value is None else str(value), f"{leaf.confidence:.2f}", leaf.source_key or "")

    console.print(table)
    tags = profile.tags()
    if tags:
        console.print(f"[dim]Tags:[/dim] {', '.join(tags)}")
