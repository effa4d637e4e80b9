"""Rich output formatting helpers for the WPFortify CLI.

Renders component results, history listings and the last-run snapshot.
Everything here works on the plain ``to_dict`` forms so the same
functions serve fresh runs and records read back from history.

Status Color Mapping:
    success / ok / completed = green, warning / issues = yellow,
    error = bold red, skipped = dim
"""

from __future__ import annotations

import datetime as _dt
from typing import Any, Mapping

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from wpfortify.jobs.history import HistoryRecord

_STATUS_STYLES: dict[str, str] = {
    "success": "green",
    "ok": "green",
    "completed": "green",
    "warning": "yellow",
    "issues": "yellow",
    "error": "bold red",
    "skipped": "dim",
}

# Rows shown per drift list before truncating.
_MAX_ROWS = 50

console = Console()


def status_style(status: str) -> str:
    """Return the Rich style string for a status value."""
    return _STATUS_STYLES.get(status, "white")


def format_timestamp(value: float | None) -> str:
    if not value:
        return "-"
    return _dt.datetime.fromtimestamp(value).strftime("%Y-%m-%d %H:%M:%S")


def _file_table(title: str, rows: list[tuple[str, ...]], columns: tuple[str, ...]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold", title_justify="left")
    for column in columns:
        table.add_column(column, overflow="fold")
    for row in rows[:_MAX_ROWS]:
        table.add_row(*row)
    if len(rows) > _MAX_ROWS:
        table.add_row(f"... {len(rows) - _MAX_ROWS} more", *([""] * (len(columns) - 1)))
    return table


def _print_drift(prefix: str, data: Mapping[str, Any]) -> None:
    modified = [
        (d["path"], d.get("expected_hash", ""), d.get("actual_hash", "") or "(unreadable)")
        for d in data.get("modified", [])
    ]
    if modified:
        console.print(_file_table(f"{prefix}Modified", modified, ("File", "Expected", "Actual")))
    for label, key in (("Missing", "missing"), ("Unexpected", "added")):
        paths = [(p,) for p in data.get(key, [])]
        if paths:
            console.print(_file_table(f"{prefix}{label}", paths, ("File",)))
    errors = [(e["path"], e.get("message", "")) for e in data.get("errors", []) if "path" in e]
    if errors:
        console.print(_file_table(f"{prefix}Unreadable", errors, ("File", "Reason")))


def print_component_result(component: str, result: Mapping[str, Any]) -> None:
    """Print one component result (single, collection or skipped)."""
    status = str(result.get("status", ""))
    header = Text.assemble(
        (component, "bold"), ("  ", ""), (status.upper(), status_style(status)),
    )
    console.print(Panel(Text(str(result.get("summary", ""))), title=header, title_align="left"))

    kind = result.get("kind")
    if kind == "single":
        _print_drift("", result)
    elif kind == "collection":
        _print_collection(result)


def _print_collection(result: Mapping[str, Any]) -> None:
    items = result.get("items", [])
    if items:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Item", style="bold")
        table.add_column("Version", style="dim")
        table.add_column("Status", justify="center")
        table.add_column("Modified", justify="right")
        table.add_column("Missing", justify="right")
        table.add_column("Unexpected", justify="right")
        table.add_column("Source", style="dim")
        for item in items:
            status = str(item.get("status", ""))
            table.add_row(
                str(item.get("name") or item.get("key")),
                str(item.get("version", "")),
                Text(status.upper(), style=status_style(status)),
                str(len(item.get("modified", []))),
                str(len(item.get("missing", []))),
                str(len(item.get("added", []))),
                str(item.get("source", "")),
            )
        console.print(table)
        for item in items:
            if item.get("status") == "issues":
                _print_drift(f"{item.get('name') or item.get('key')}: ", item)

    skipped = result.get("skipped", [])
    if skipped:
        table = Table(title="Skipped", show_header=True, header_style="bold", title_justify="left")
        table.add_column("Item")
        table.add_column("Reason", style="dim")
        for entry in skipped:
            table.add_row(str(entry.get("name") or entry.get("key")), str(entry.get("reason", "")))
        console.print(table)

    errors = result.get("errors", [])
    if errors:
        table = Table(title="Not verified", show_header=True, header_style="bold", title_justify="left")
        table.add_column("Item")
        table.add_column("Error", style="red")
        for entry in errors:
            table.add_row(str(entry.get("name") or entry.get("key")), str(entry.get("message", "")))
        console.print(table)


def print_run(payload: Mapping[str, Any], status: str = "", total_issues: int | None = None) -> None:
    """Print a persisted run payload: every component then the summary."""
    results = payload.get("results", {})
    for component in payload.get("components", list(results)):
        if component in results:
            print_component_result(component, results[component])

    parts = [f"[bold]Summary:[/bold] {payload.get('summary', '')}"]
    if status:
        parts.append(f"[{status_style(status)}]{status}[/{status_style(status)}]")
    if total_issues is not None:
        parts.append(f"{total_issues} issue(s)")
    console.print(" | ".join(parts))


def print_history(records: list[HistoryRecord], total: int, counts: Mapping[str, int]) -> None:
    """Print a page of history records with the rolling counts."""
    if not records:
        console.print("[dim]No scan history recorded.[/dim]")
        return

    table = Table(title="WPFortify Scan History", show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Completed")
    table.add_column("Context", style="dim")
    table.add_column("Components")
    table.add_column("Status", justify="center")
    table.add_column("Issues", justify="right")
    table.add_column("Summary", overflow="fold")
    for record in records:
        table.add_row(
            str(record.id),
            format_timestamp(record.completed_at),
            record.context,
            ", ".join(record.components),
            Text(record.status.upper(), style=status_style(record.status)),
            str(record.total_issues),
            record.summary,
        )
    console.print(table)
    console.print(
        f"Showing {len(records)} of {total} | "
        f"[green]{counts.get('success', 0)} success[/green] | "
        f"[yellow]{counts.get('warning', 0)} warning[/yellow] | "
        f"[red]{counts.get('error', 0)} error[/red]"
    )
