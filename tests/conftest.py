"""Shared fixtures for wpfortify tests."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from tests.helpers import FakeOrg, build_site
from wpfortify.config import Settings
from wpfortify.manifest.fetcher import ManifestFetcher
from wpfortify.site.installation import Installation


@pytest.fixture
def wp_root(tmp_path: Path) -> Path:
    """A fake WordPress installation on disk."""
    return build_site(tmp_path / "wordpress")


@pytest.fixture
def installation(wp_root: Path) -> Installation:
    return Installation(wp_root)


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / "state"


@pytest.fixture
def fake_org() -> FakeOrg:
    """WordPress.org stand-in that knows the fake installation."""
    return FakeOrg.for_site()


@pytest.fixture
def fetcher(fake_org: FakeOrg) -> Iterator[ManifestFetcher]:
    with fake_org.fetcher() as manifest_fetcher:
        yield manifest_fetcher


@pytest.fixture
def settings(wp_root: Path, state_dir: Path) -> Settings:
    return Settings(root=wp_root, state_dir=state_dir)
