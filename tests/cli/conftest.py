"""Shared fixtures for CLI tests.

Every command is invoked with ``--state-dir`` pointing into the test's
temporary directory, and ``common.open_fetcher`` is replaced so manifests
come from the in-memory WordPress.org stand-in instead of the network.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner, Result

from tests.helpers import FakeOrg, Invoke
from wpfortify.cli import common
from wpfortify.cli.main import cli


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CliRunner for invoking commands."""
    return CliRunner()


@pytest.fixture(autouse=True)
def offline(monkeypatch: pytest.MonkeyPatch, fake_org: FakeOrg, tmp_path: Path) -> FakeOrg:
    """Serve manifests from ``fake_org`` and keep cwd away from stray settings files."""
    monkeypatch.setattr(common, "open_fetcher", lambda settings: fake_org.fetcher())
    monkeypatch.chdir(tmp_path)
    return fake_org


@pytest.fixture
def wpf(runner: CliRunner, state_dir: Path) -> Invoke:
    """Run ``wpfortify --state-dir <tmp> ARGS...``."""

    def invoke(*args: str) -> Result:
        return runner.invoke(cli, ["--state-dir", str(state_dir), *args])

    return invoke
