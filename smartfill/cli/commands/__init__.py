"""Subcommands of the smartfill CLI."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click


def load_json(path: str) -> Any:
    """Read a JSON document from ``path`` (``-`` for stdin)."""

    try:
        if path == "-":
            return json.load(click.get_text_stream("stdin"))
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise click.BadParameter(f"cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"{path} is not valid JSON: {exc}") from exc
