"""Helpers shared by the WPFortify CLI commands.

Commands obtain their settings and collaborators through these functions
so tests can substitute a stubbed manifest transport in one place
(``open_fetcher``).
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Iterable

import click

from wpfortify.config import Settings, load_settings
from wpfortify.exceptions import ConfigError
from wpfortify.jobs.service import JobService
from wpfortify.jobs.state_store import FileStateStore
from wpfortify.manifest.fetcher import ManifestFetcher

# Exit codes shared by the scanning commands.
EXIT_CLEAN = 0
EXIT_DRIFT = 1
EXIT_FAILED = 2
EXIT_EXPIRED = 3

TARGET_CHOICES = ("core", "plugins", "themes")


def cli_settings(ctx: click.Context, **overrides: Any) -> Settings:
    """Load settings from the group's ``--config`` and apply CLI overrides.

    The group's ``--state-dir`` applies unless the caller overrides it.
    """
    obj = ctx.obj or {}
    config_path = obj.get("config")
    try:
        settings = load_settings(Path(config_path) if config_path else None)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(EXIT_FAILED)
    overrides.setdefault("state_dir", obj.get("state_dir"))
    return settings.with_overrides(**overrides)


def open_fetcher(settings: Settings) -> ManifestFetcher:
    """Create the manifest fetcher used by CLI commands."""
    return ManifestFetcher(timeout=settings.timeout)


def job_state_store(settings: Settings) -> FileStateStore:
    return FileStateStore(settings.state_dir / "jobs")


def build_service(settings: Settings, fetcher: ManifestFetcher) -> JobService:
    return JobService.from_settings(settings, fetcher, job_state_store(settings))


def exit_code_for(status: str, total_issues: int) -> int:
    """Map a run's history status onto the command exit code."""
    if status == "error":
        return EXIT_FAILED
    return EXIT_DRIFT if total_issues else EXIT_CLEAN


def requested_targets(targets: Iterable[str]) -> list[str] | None:
    """None when no ``--target`` was given, so settings decide."""
    selected = list(targets)
    return selected or None
