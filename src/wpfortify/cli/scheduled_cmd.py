"""``wpfortify scheduled``: the unattended daily check.

Meant to be called from cron or a systemd timer. Runs the configured
targets synchronously when ``daily_scan_enabled`` is set (or ``--force``
is given) and records the result with the ``scheduled`` context.

Exit Codes:
    0 : Disabled, or no drift found.
    1 : Drift found.
    2 : The run recorded errors, or the settings are invalid.
"""

from __future__ import annotations

import json
import sys

import click

from wpfortify.cli import common
from wpfortify.exceptions import WPFortifyError


@click.command("scheduled")
@click.option("--root", type=click.Path(exists=True, file_okay=False), default=None,
              help="WordPress installation directory.")
@click.option("--force", is_flag=True, default=False,
              help="Run even when the scheduled check is disabled.")
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format: text (default) or json.",
)
@click.pass_context
def scheduled_command(
    ctx: click.Context,
    root: str | None,
    force: bool,
    output_format: str,
) -> None:
    """Run the scheduled integrity check."""
    settings = common.cli_settings(ctx, root=root)
    try:
        with common.open_fetcher(settings) as fetcher:
            outcome = common.build_service(settings, fetcher).run_scheduled(force=force)
    except WPFortifyError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(common.EXIT_FAILED)

    if outcome is None:
        if output_format == "json":
            click.echo(json.dumps({"skipped": True, "reason": "Scheduled scan is disabled."}))
        else:
            click.echo("Scheduled scan is disabled.")
        sys.exit(common.EXIT_CLEAN)

    record = outcome.record
    if output_format == "json":
        click.echo(json.dumps(record.to_dict(), indent=2))
    else:
        click.echo(f"[{record.status}] {record.summary}")

    sys.exit(common.exit_code_for(record.status, record.total_issues))
