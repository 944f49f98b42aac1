from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import (
    render_automations,
    render_latest,
    render_logs,
    render_report,
    render_series,
)


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the greenhouse monitor service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


def parse_assignment(text: str) -> tuple[str, Any]:
    """Split ``field=value``; ``true``/``false`` become booleans."""
    key, sep, raw = text.partition("=")
    key = key.strip()
    if not sep or not key:
        raise typer.BadParameter(f"Expected FIELD=VALUE, got {text!r}.")
    value = raw.strip()
    lowered = value.lower()
    if lowered in {"true", "on"}:
        return key, True
    if lowered in {"false", "off"}:
        return key, False
    return key, value


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Monitor API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
    instance: Optional[str] = typer.Option(
        None,
        "--instance",
        "-i",
        help="Instance (node) whose active sensors scope the request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout, instance=instance)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("latest")
def latest_command(ctx: typer.Context) -> None:
    """Show the composite latest state."""
    state = _get_state(ctx)
    render_latest(state.client.get_latest())


@app.command("logs")
def logs_command(
    ctx: typer.Context,
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Match log id or action text."),
    start: Optional[str] = typer.Option(None, "--start", help="Earliest time (ISO-8601)."),
    end: Optional[str] = typer.Option(None, "--end", help="Latest time (ISO-8601)."),
    page: int = typer.Option(1, "--page", "-p", min=1, help="Page number."),
) -> None:
    """List merged log entries for the instance's active sensors."""
    state = _get_state(ctx)
    render_logs(state.client.get_logs(search=search, start=start, end=end, page=page))


@app.command("set")
def set_command(
    ctx: typer.Context,
    assignments: List[str] = typer.Argument(..., help="FIELD=VALUE pairs, e.g. temperature=21.5 fan1State=true."),
    sensors: Optional[List[str]] = typer.Option(
        None,
        "--sensor",
        help="Active sensor name; repeat to allow several. Defaults to the saved selection.",
    ),
) -> None:
    """Write new values for the given fields."""
    state = _get_state(ctx)
    updates: Dict[str, Any] = dict(parse_assignment(item) for item in assignments)
    typer.echo(f"Writing {', '.join(updates)} to {state.config.base_url} ...")
    render_report(state.client.write_reading(updates, sensors))


@app.command("series")
def series_command(
    ctx: typer.Context,
    sensors: Optional[List[str]] = typer.Option(
        None,
        "--sensor",
        help="Sensor to chart; repeat for several. Defaults to the saved selection.",
    ),
) -> None:
    """Print numeric sensor history aligned on one timeline."""
    state = _get_state(ctx)
    render_series(state.client.get_series(sensors))


@app.command("automations")
def automations_command(ctx: typer.Context) -> None:
    """List stored automation rules."""
    state = _get_state(ctx)
    render_automations(state.client.list_automations())
