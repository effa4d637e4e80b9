"""``wpfortify history``: browse and maintain recorded runs.

Subcommands:
    list    Page through records, newest first, with optional filters.
    show    Print one record in full.
    last    Print the most recent run snapshot.
    delete  Remove one record.
    prune   Remove records older than N days.
"""

from __future__ import annotations

import json
import sys

import click

from wpfortify.cli import common
from wpfortify.cli.output import console, format_timestamp, print_history, print_run
from wpfortify.exceptions import HistoryError
from wpfortify.jobs.history import STATUSES, ResultStore


def _store(ctx: click.Context) -> ResultStore:
    return ResultStore(common.cli_settings(ctx).state_dir)


@click.group("history")
def history_group() -> None:
    """Inspect and maintain the scan history."""


@history_group.command("list")
@click.option("--status", type=click.Choice(STATUSES), default=None, help="Only this status.")
@click.option("--context", type=click.Choice(["manual", "scheduled"]), default=None,
              help="Only runs started this way.")
@click.option("--page", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--per-page", type=click.IntRange(min=1, max=200), default=20, show_default=True)
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format: text (default) or json.",
)
@click.pass_context
def list_command(
    ctx: click.Context,
    status: str | None,
    context: str | None,
    page: int,
    per_page: int,
    output_format: str,
) -> None:
    """List recorded runs, newest first."""
    store = _store(ctx)
    try:
        records, total = store.list_records(
            status=status, context=context, page=page, per_page=per_page,
        )
        counts = store.counts()
    except HistoryError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(common.EXIT_FAILED)

    if output_format == "json":
        click.echo(json.dumps({
            "records": [
                {k: v for k, v in r.to_dict().items() if k not in ("results", "errors")}
                for r in records
            ],
            "total": total,
            "page": page,
            "per_page": per_page,
            "counts": counts,
        }, indent=2))
    else:
        print_history(records, total, counts)


@history_group.command("show")
@click.argument("record_id", type=int)
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format: text (default) or json.",
)
@click.pass_context
def show_command(ctx: click.Context, record_id: int, output_format: str) -> None:
    """Print the full record RECORD_ID."""
    try:
        record = _store(ctx).get(record_id)
    except HistoryError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(common.EXIT_FAILED)
    if record is None:
        click.echo(f"Error: no history record #{record_id}", err=True)
        sys.exit(common.EXIT_FAILED)

    if output_format == "json":
        click.echo(json.dumps(record.to_dict(), indent=2))
        return
    console.print(
        f"[bold]Run #{record.id}[/bold] {format_timestamp(record.completed_at)} "
        f"({record.context})"
    )
    print_run(record.to_dict(), record.status, record.total_issues)


@history_group.command("last")
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format: text (default) or json.",
)
@click.pass_context
def last_command(ctx: click.Context, output_format: str) -> None:
    """Print the most recent run."""
    try:
        payload = _store(ctx).last()
    except HistoryError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(common.EXIT_FAILED)

    if payload is None:
        if output_format == "json":
            click.echo("null")
        else:
            click.echo("No scan has been recorded yet.")
        return
    if output_format == "json":
        click.echo(json.dumps(payload, indent=2))
    else:
        console.print(f"[bold]Last run[/bold] {format_timestamp(payload.get('completed_at'))}")
        print_run(payload)


@history_group.command("delete")
@click.argument("record_id", type=int)
@click.pass_context
def delete_command(ctx: click.Context, record_id: int) -> None:
    """Delete the record RECORD_ID."""
    try:
        removed = _store(ctx).delete(record_id)
    except HistoryError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(common.EXIT_FAILED)
    if not removed:
        click.echo(f"Error: no history record #{record_id}", err=True)
        sys.exit(common.EXIT_FAILED)
    click.echo(f"Deleted record #{record_id}.")


@history_group.command("prune")
@click.option("--days", type=int, required=True, help="Keep records newer than this many days.")
@click.pass_context
def prune_command(ctx: click.Context, days: int) -> None:
    """Delete records older than --days days."""
    try:
        removed = _store(ctx).prune(days)
    except HistoryError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(common.EXIT_FAILED)
    click.echo(f"Removed {removed} record(s).")
