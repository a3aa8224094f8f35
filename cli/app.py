from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import echo_key_values, render_metrics, render_queue


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the agro analysis worker.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


def _load_readings(path: Path) -> List[Dict[str, Any]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{path} is not valid JSON: {exc.msg}") from exc
    readings = data if isinstance(data, list) else [data]
    if not all(isinstance(item, dict) for item in readings):
        raise typer.BadParameter(f"{path} must hold a reading object or a list of them.")
    return readings


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Worker API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each HTTP request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("send")
def send_command(
    ctx: typer.Context,
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="JSON file with one reading or a list."
    ),
) -> None:
    """Publish sensor readings to the analysis queue."""
    state = _get_state(ctx)
    readings = _load_readings(file)
    typer.echo(f"Sending {len(readings)} reading(s) to {state.config.base_url} ...")
    for reading in readings:
        message_id = state.client.send_reading(reading)
        typer.secho(f"Queued. message_id={message_id}", fg=typer.colors.GREEN)


@app.command("health")
def health_command(ctx: typer.Context) -> None:
    """Show the worker health status."""
    state = _get_state(ctx)
    payload = state.client.health()
    echo_key_values([("status", payload.get("status")), ("service", payload.get("service"))])


@app.command("queue")
def queue_command(ctx: typer.Context) -> None:
    """Show approximate queue depth."""
    state = _get_state(ctx)
    render_queue(state.client.queue_stats())


@app.command("metrics")
def metrics_command(
    ctx: typer.Context,
    prefix: Optional[str] = typer.Option(
        "agro_",
        "--prefix",
        "-p",
        help="Only show samples whose name starts with this prefix.",
    ),
) -> None:
    """Print current metric samples."""
    state = _get_state(ctx)
    render_metrics(state.client.metrics_text(), prefix=prefix)
