"""Property-based tests for incremental verification.

Verifies:
- Chunk independence: the core diff does not depend on the chunk size.
- Resumability: serialising the state between every step changes nothing.
- Progress: overall job progress never decreases and ends at 100.
- Unexpected-file detection and segment-wise prefix matching.
"""
from __future__ import annotations

from pathlib import Path

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from tests.helpers import FakeOrg, build_site, write_files
from wpfortify.config import Settings
from wpfortify.core.hashing import find_unexpected
from wpfortify.core.models import ComponentState
from wpfortify.core.orchestrator import Orchestrator, create_job, default_scanners
from wpfortify.core.paths import is_under
from wpfortify.core.scanner import ComponentScanner, CoreStrategy
from wpfortify.site.installation import Installation

_fixture_ok = settings(
    max_examples=25,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)


@pytest.fixture(scope="module")
def drifted_root(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """Fake installation with one modified, one missing and one added core file."""
    root = build_site(tmp_path_factory.mktemp("chunking") / "wordpress")
    write_files(root, {
        "index.php": "<?php // tampered",
        "wp-admin/extra.php": "<?php // dropped in",
    })
    (root / "wp-login.php").unlink()
    return root


def run_core(root: Path, chunk_size: int, *, round_trip: bool = False) -> tuple:
    org = FakeOrg.for_site()
    with org.fetcher() as fetcher:
        scanner = ComponentScanner(CoreStrategy(Installation(root), fetcher, chunk_size=chunk_size))
        state = ComponentState(component="core")
        for _ in range(500):
            if scanner.advance(state).complete:
                break
            if round_trip:
                state = ComponentState.from_dict(state.to_dict())
        result = scanner.summarize(state)
    return (
        result.status,
        [(d.path, d.actual_hash) for d in result.modified],
        list(result.missing),
        list(result.added),
    )


# ---------------------------------------------------------------------------
# Chunk independence
# ---------------------------------------------------------------------------


class TestChunkIndependence:
    """The diff is a function of the files, not of how the work is split."""

    @_fixture_ok
    @given(chunk_size=st.integers(min_value=1, max_value=12))
    def test_same_diff_for_any_chunk_size(self, drifted_root: Path, chunk_size: int) -> None:
        assert run_core(drifted_root, chunk_size) == run_core(drifted_root, 1000)

    @_fixture_ok
    @given(chunk_size=st.integers(min_value=1, max_value=6))
    def test_serialised_state_between_steps(self, drifted_root: Path, chunk_size: int) -> None:
        assert run_core(drifted_root, chunk_size, round_trip=True) == run_core(drifted_root, chunk_size)

    def test_drift_is_what_was_planted(self, drifted_root: Path) -> None:
        status, modified, missing, added = run_core(drifted_root, 3)
        assert status == "completed"
        assert [path for path, _ in modified] == ["index.php"]
        assert missing == ["wp-login.php"]
        assert added == ["wp-admin/extra.php"]


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


class TestProgressMonotonic:
    @_fixture_ok
    @given(
        chunk_size=st.integers(min_value=1, max_value=8),
        components=st.lists(
            st.sampled_from(["core", "plugins", "themes", "backups"]),
            min_size=1, max_size=4, unique=True,
        ),
    )
    def test_progress_never_decreases(
        self, drifted_root: Path, tmp_path_factory: pytest.TempPathFactory,
        chunk_size: int, components: list[str],
    ) -> None:
        config = Settings(root=drifted_root, state_dir=tmp_path_factory.mktemp("state"), chunk_size=chunk_size)
        with FakeOrg.for_site().fetcher() as fetcher:
            orchestrator = Orchestrator(default_scanners(config, Installation(drifted_root), fetcher))
            job = create_job(components)
            seen = []
            for _ in range(500):
                step = orchestrator.advance(job)
                job = step.job
                seen.append(step.progress)
                if step.completed:
                    break
        assert seen == sorted(seen)
        assert seen[-1] == 100
        assert set(job.results) == set(components)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

segment = st.text(alphabet="abcdefgh-_.", min_size=1, max_size=6).filter(lambda s: s not in (".", ".."))
relative_paths = st.lists(segment, min_size=1, max_size=4).map("/".join)


class TestPathProperties:
    @given(actual=st.lists(relative_paths, max_size=20), expected=st.lists(relative_paths, max_size=20))
    def test_unexpected_is_actual_minus_expected(self, actual: list[str], expected: list[str]) -> None:
        added = find_unexpected(actual, expected)
        assert set(added) == set(actual) - set(expected)
        assert len(added) == len(set(added))

    @given(prefix=relative_paths, suffix=segment)
    def test_prefix_matches_whole_segments(self, prefix: str, suffix: str) -> None:
        assert is_under(f"{prefix}/{suffix}", prefix)
        assert is_under(prefix, prefix)
        assert not is_under(f"{prefix}{suffix}", prefix)
