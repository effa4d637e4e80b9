"""``wpfortify job``: interactive jobs advanced one step per invocation.

``job start`` stores a new job and prints its id. Each ``job poll`` loads
the job, performs one bounded unit of work and saves it back, so a caller
(a shell loop, a web UI, a cron wrapper) can show progress between steps.
Job state expires after ``job_ttl`` seconds without a poll.

Exit Codes (``poll``):
    0 : Job still running, or completed with no drift.
    1 : Job completed and drift was found.
    2 : Job completed with errors, or its state is unreadable.
    3 : The job id is unknown or its session expired.
"""

from __future__ import annotations

import json
import sys

import click

from wpfortify.cli import common
from wpfortify.cli.output import console, print_run
from wpfortify.exceptions import JobNotFoundError, WPFortifyError
from wpfortify.jobs.service import PollResult


@click.group("job")
def job_group() -> None:
    """Start and advance interactive verification jobs."""


@job_group.command("start")
@click.option(
    "--target", "targets",
    type=click.Choice(common.TARGET_CHOICES),
    multiple=True,
    help="Component to verify (repeatable). Defaults to the configured targets.",
)
@click.option("--root", type=click.Path(exists=True, file_okay=False), default=None,
              help="WordPress installation directory.")
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format: text (default) or json.",
)
@click.pass_context
def start_command(
    ctx: click.Context,
    targets: tuple[str, ...],
    root: str | None,
    output_format: str,
) -> None:
    """Create a job and print its id."""
    settings = common.cli_settings(ctx, root=root)
    try:
        with common.open_fetcher(settings) as fetcher:
            service = common.build_service(settings, fetcher)
            job_id = service.start(common.requested_targets(targets))
            components = service.load(job_id).components
    except WPFortifyError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(common.EXIT_FAILED)

    if output_format == "json":
        click.echo(json.dumps({"job_id": job_id, "components": components}))
    else:
        click.echo(job_id)


def _poll_to_dict(result: PollResult) -> dict:
    return {
        "job_id": result.job_id,
        "progress": result.progress,
        "message": result.message,
        "completed": result.completed,
        "summary": result.summary,
        "results": result.results,
        "completed_at": result.completed_at,
        "record_id": result.record_id,
    }


@job_group.command("poll")
@click.argument("job_id")
@click.option("--root", type=click.Path(exists=True, file_okay=False), default=None,
              help="WordPress installation directory.")
@click.option("--until-done", is_flag=True, default=False,
              help="Keep polling until the job completes.")
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format: text (default) or json.",
)
@click.pass_context
def poll_command(
    ctx: click.Context,
    job_id: str,
    root: str | None,
    until_done: bool,
    output_format: str,
) -> None:
    """Advance JOB_ID by one step (or to completion with --until-done)."""
    settings = common.cli_settings(ctx, root=root)
    try:
        with common.open_fetcher(settings) as fetcher:
            service = common.build_service(settings, fetcher)
            while True:
                result = service.poll(job_id)
                if output_format == "text" and not result.completed:
                    console.print(f"[dim]{result.progress:>3d}%[/dim] {result.message}")
                if result.completed or not until_done:
                    break
            record = (
                service.results.get(result.record_id)
                if result.record_id is not None else None
            )
    except JobNotFoundError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(common.EXIT_EXPIRED)
    except WPFortifyError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(common.EXIT_FAILED)

    if output_format == "json":
        data = _poll_to_dict(result)
        if record is not None:
            data["status"] = record.status
            data["total_issues"] = record.total_issues
        click.echo(json.dumps(data, indent=2))
    elif record is not None:
        print_run(record.to_dict(), record.status, record.total_issues)

    if record is None:
        sys.exit(common.EXIT_CLEAN)
    sys.exit(common.exit_code_for(record.status, record.total_issues))
