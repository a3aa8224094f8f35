from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_queue(payload: Dict[str, Any]) -> None:
    echo_heading("Queue")
    echo_key_values(
        [
            ("name", payload.get("name")),
            ("visible", payload.get("visible")),
            ("in_flight", payload.get("in_flight")),
            ("dead_lettered", payload.get("dead_lettered")),
        ]
    )


def render_metrics(text: str, prefix: Optional[str] = None) -> None:
    """Print sample lines of a Prometheus exposition, skipping HELP/TYPE comments."""
    shown = 0
    for line in text.splitlines():
        if not line or line.startswith("#"):
            continue
        if prefix and not line.startswith(prefix):
            continue
        typer.echo(line)
        shown += 1
    if not shown:
        typer.echo("No matching samples.")
