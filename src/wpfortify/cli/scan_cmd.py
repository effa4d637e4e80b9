"""``wpfortify scan [ROOT]``: verify an installation in one synchronous run.

The job is advanced in a loop until it completes (or the configured
``max_sync_steps`` ceiling is reached), then recorded in the history
exactly like an interactive or scheduled run.

Exit Codes:
    0 : Every verified file matches its checksum.
    1 : Modified, missing or unexpected files were found.
    2 : A component or file could not be verified, or the settings are invalid.
"""

from __future__ import annotations

import json
import sys

import click
from rich.progress import BarColumn, Progress, TextColumn

from wpfortify.cli import common
from wpfortify.cli.output import console, print_run
from wpfortify.core.models import AdvanceResult
from wpfortify.exceptions import WPFortifyError


@click.command("scan")
@click.argument(
    "root",
    type=click.Path(exists=True, file_okay=False),
    required=False,
    default=None,
)
@click.option(
    "--target", "targets",
    type=click.Choice(common.TARGET_CHOICES),
    multiple=True,
    help="Component to verify (repeatable). Defaults to the configured targets.",
)
@click.option(
    "--locale",
    default=None,
    help="Checksum locale for core (default: the installation's own locale).",
)
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format: text (default) or json.",
)
@click.pass_context
def scan_command(
    ctx: click.Context,
    root: str | None,
    targets: tuple[str, ...],
    locale: str | None,
    output_format: str,
) -> None:
    """Verify WordPress files against the official checksums.

    ROOT is the WordPress installation directory (default: the configured
    root, or the current directory).
    """
    settings = common.cli_settings(ctx, root=root, locale=locale)

    try:
        with common.open_fetcher(settings) as fetcher:
            service = common.build_service(settings, fetcher)
            if output_format == "text":
                with Progress(
                    TextColumn("[bold]{task.description}"),
                    BarColumn(),
                    TextColumn("{task.percentage:>3.0f}%"),
                    console=console,
                    transient=True,
                ) as progress:
                    task = progress.add_task("Starting scan", total=100)

                    def on_progress(step: AdvanceResult) -> None:
                        progress.update(task, completed=step.progress, description=step.message)

                    outcome = service.run(
                        common.requested_targets(targets), on_progress=on_progress,
                    )
            else:
                outcome = service.run(common.requested_targets(targets))
    except WPFortifyError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(common.EXIT_FAILED)

    record = outcome.record
    if output_format == "json":
        data = record.to_dict()
        data["completed"] = outcome.completed
        data["steps"] = outcome.steps
        click.echo(json.dumps(data, indent=2))
    else:
        if not outcome.completed:
            console.print(
                f"[yellow]Stopped after {outcome.steps} steps; results are partial.[/yellow]"
            )
        print_run(record.to_dict(), record.status, record.total_issues)

    sys.exit(common.exit_code_for(record.status, record.total_issues))
