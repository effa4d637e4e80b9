"""WPFortify CLI: integrity verification for WordPress installations.

Entry point for the ``wpfortify`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    scan       Verify core, plugins and themes in one synchronous run.
    job        Start an interactive job and advance it one step per poll.
    scheduled  Run the scheduled check when it is enabled.
    history    List, show, delete and prune recorded runs.
    baseline   Record local checksum baselines for third-party extensions.

Usage::

    wpfortify scan /var/www/html
    wpfortify scan /var/www/html --target core --format json
    wpfortify job start --target plugins
    wpfortify job poll 3f2a... --until-done
    wpfortify scheduled --force
    wpfortify history list --status warning
    wpfortify baseline --plugin my-plugin/my-plugin.php
"""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from wpfortify import __version__
from wpfortify.cli.baseline_cmd import baseline_command
from wpfortify.cli.history_cmd import history_group
from wpfortify.cli.job_cmd import job_group
from wpfortify.cli.scan_cmd import scan_command
from wpfortify.cli.scheduled_cmd import scheduled_command


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Settings file (default: ./wpfortify.yaml when present).",
)
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory for job state, history and baselines.",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log debug output to stderr.")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, state_dir: str | None, verbose: bool) -> None:
    """WPFortify: Integrity verification for WordPress installations.

    Compare core, plugin and theme files against the checksums published
    by WordPress.org (or locally recorded baselines) and report modified,
    missing and unexpected files.
    """
    ctx.ensure_object(dict)
    ctx.obj["config"] = config_path
    ctx.obj["state_dir"] = state_dir
    _configure_logging(verbose)


# Register all subcommands
cli.add_command(scan_command)
cli.add_command(job_group)
cli.add_command(scheduled_command)
cli.add_command(history_group)
cli.add_command(baseline_command)
