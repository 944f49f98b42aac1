from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_latest(payload: Dict[str, Any]) -> None:
    echo_heading("Latest State")
    echo_key_values([("timestamp", payload.get("timestamp") or "never")])
    values = payload.get("values") or {}
    for key, value in values.items():
        shown = value if value != "" else "-"
        typer.echo(f"  {key}: {shown}")


def render_logs(payload: Dict[str, Any]) -> None:
    echo_heading(
        f"Logs (page {payload.get('page')} of {payload.get('total_pages')}, "
        f"{payload.get('total')} entries)"
    )
    entries = payload.get("entries") or []
    if not entries:
        typer.echo("No logs available.")
        return
    for entry in entries:
        typer.echo(f"{entry.get('id'):>5}  {entry.get('time_display')}  {entry.get('action')}")


def render_report(payload: Dict[str, Any]) -> None:
    echo_heading("Write Results")
    results = payload.get("results") or []
    if not results:
        typer.echo("No board matched the active sensors.")
        return
    for result in results:
        if result.get("error"):
            typer.secho(f"  - {result.get('board')}: failed ({result.get('error')})", fg=typer.colors.RED)
        else:
            typer.secho(
                f"  - {result.get('board')}: stored reading {result.get('reading_id')}",
                fg=typer.colors.GREEN,
            )


def render_series(payload: Dict[str, Any]) -> None:
    echo_heading("Aligned Series")
    labels: List[str] = payload.get("labels") or []
    series = payload.get("series") or []
    if not labels:
        typer.echo("No data available.")
        return
    header = ["time"] + [item.get("sensor", "") for item in series]
    typer.echo(" | ".join(header))
    for index, label in enumerate(labels):
        cells = [label]
        for item in series:
            value = item.get("values", [])[index]
            cells.append("-" if value is None else str(value))
        typer.echo(" | ".join(cells))


def render_automations(items: List[Dict[str, Any]]) -> None:
    echo_heading("Automations")
    if not items:
        typer.echo("No automations defined.")
        return
    for item in items:
        state = "on" if item.get("enabled") else "off"
        typer.echo(
            f"  - {item.get('id')}: {item.get('name') or '(unnamed)'} "
            f"[{item.get('type')}, {item.get('boardType')}, {item.get('action')}, {state}]"
        )
