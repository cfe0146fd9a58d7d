"""Free-text suggestion command."""
from __future__ import annotations

import click
from rich.console import Console

from ...profile import normalize, profile_suggestions
from ...profile.suggestions import FIELD_TYPE_PATHS
from . import load_json

console = Console()


@click.command(name="suggest")
@click.argument("profile_path", metavar="PROFILE")
@click.argument("field_type", type=click.Choice(sorted(FIELD_TYPE_PATHS), case_sensitive=False))
def suggest_command(profile_path: str, field_type: str):
    """List profile values that could fill a free-text field of FIELD_TYPE."""
    profile = normalize(load_json(profile_path))
    suggestions = profile_suggestions(profile, field_type)
    if not suggestions:
        console.print(f"[yellow]No profile values for[/yellow] [cyan]{field_type}[/cyan]")
        return
    for value in suggestions:
        console.print(f"  [green]•[/green] {value}")
