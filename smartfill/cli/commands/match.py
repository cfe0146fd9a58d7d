"""Field matching command."""
from __future__ import annotations

import json
from typing import Any, List

import click
from rich.console import Console
from rich.table import Table

from ...config import get_settings
from ...matching import FieldDescriptor, InvalidFieldError, MatchEngine
from ...profile import normalize
from ...remote import build_default_client
from . import load_json

console = Console()


def _load_fields(payload: Any) -> List[FieldDescriptor]:
    items = payload if isinstance(payload, list) else [payload]
    try:
        return [FieldDescriptor.from_dict(item) for item in items]
    except InvalidFieldError as exc:
        raise click.BadParameter(str(exc)) from exc


@click.command(name="match")
@click.argument("profile_path", metavar="PROFILE")
@click.argument("fields_path", metavar="FIELDS")
@click.option("--allow-remote", is_flag=True, help="Allow the remote suggestion stage")
@click.option("--explain", is_flag=True, help="Show every stage attempt")
@click.option("--json", "as_json", is_flag=True, help="Print match reports as JSON")
def match_command(profile_path: str, fields_path: str, allow_remote: bool, explain: bool, as_json: bool):
    """
    Match form fields against a profile.

    FIELDS is a JSON file holding one field descriptor or a list of them
    (label, name, id, placeholder, ariaLabel, type, options).

    Examples:

      smartfill match profile.json fields.json

      smartfill match profile.json fields.json --explain
    """
    settings = get_settings()
    profile = normalize(load_json(profile_path))
    fields = _load_fields(load_json(fields_path))

    client = build_default_client(settings.remote_model, settings.remote_timeout_seconds) if allow_remote else None
    engine = MatchEngine(thresholds=settings.stage_thresholds(), suggestion_client=client)
    reports = [engine.explain(field, profile, allow_remote=allow_remote) for field in fields]

    if as_json:
        click.echo(json.dumps([report.to_dict() for report in reports], indent=2, ensure_ascii=False))
        return

    table = Table(title="Matches", show_header=True, header_style="bold cyan", border_style="cyan")
    table.add_column("Field", style="white")
    table.add_column("Option", style="yellow")
    table.add_column("Confidence", justify="right")
    table.add_column("Method", style="green")
    table.add_column("Reasoning", style="dim")
    for field, report in zip(fields, reports):
        result = report.result
        option = result.option.text if result.option is not None else "[red]none[/red]"
        table.add_row(
            field.label or field.name or field.element_id,
            option,
            f"{result.confidence:.2f}",
            result.method.value,
            result.reasoning,
        )
    console.print(table)

    if explain:
        for field, report in zip(fields, reports):
            attempts = Table(title=f"Stages: {field.label or field.name}", border_style="blue")
            attempts.add_column("Stage", style="cyan")
            attempts.add_column("Status", style="yellow")
            attempts.add_column("Candidate")
            attempts.add_column("Detail", style="dim")
            for attempt in report.attempts:
                candidate = attempt.candidate
                described = (
                    f"{candidate.option.text} ({candidate.confidence:.2f})"
                    if candidate is not None and candidate.option is not None
                    else ""
                )
                attempts.add_row(attempt.stage.value, attempt.status.value, described, attempt.detail)
            console.print(attempts)
