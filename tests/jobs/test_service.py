"""Tests for job control: start/poll, synchronous and scheduled runs.

Verifies:
    - Component resolution from the request and the settings.
    - The interactive path persists state between polls, refreshes its
      TTL, and on completion records the run and discards the state.
    - Unknown and expired jobs are reported distinctly from running ones.
    - The synchronous path honours the iteration ceiling and records
      partial results when it is hit.
    - The scheduled trigger honours ``daily_scan_enabled``.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from wpfortify.config import Settings, Targets
from wpfortify.core.models import AdvanceResult, JobContext
from wpfortify.core.orchestrator import Orchestrator, default_scanners
from wpfortify.exceptions import JobNotFoundError, JobStateError
from wpfortify.jobs.history import ResultStore
from wpfortify.jobs.service import (
    EXPIRED_MESSAGE,
    JOB_KEY_PREFIX,
    JobService,
    resolve_components,
)
from wpfortify.jobs.state_store import FileStateStore, MemoryStateStore, StateStore
from wpfortify.manifest.fetcher import ManifestFetcher
from wpfortify.site.installation import Installation


class FakeClock:
    def __init__(self, now: float = 5000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_service(
    settings: Settings,
    fetcher: ManifestFetcher,
    clock: FakeClock,
    state_store: StateStore | None = None,
) -> JobService:
    orchestrator = Orchestrator(default_scanners(settings, Installation(settings.root), fetcher))
    return JobService(
        settings,
        orchestrator,
        ResultStore(settings.state_dir, clock),
        state_store if state_store is not None else MemoryStateStore(clock),
        id_factory=lambda: "job1",
        clock=clock,
    )


@pytest.fixture
def service(settings: Settings, fetcher: ManifestFetcher, clock: FakeClock) -> JobService:
    return make_service(settings, fetcher, clock)


class TestResolveComponents:
    """Which components a job covers."""

    def test_requested_in_canonical_order(self) -> None:
        assert resolve_components(["themes", "core"], Settings()) == ["core", "themes"]

    def test_unknown_dropped_and_case_folded(self) -> None:
        assert resolve_components(["Plugins", "backups"], Settings()) == ["plugins"]

    def test_empty_falls_back_to_configured_targets(self) -> None:
        settings = Settings(targets=Targets(core=False, plugins=True, themes=False))
        assert resolve_components([], settings) == ["plugins"]
        assert resolve_components(None, settings) == ["plugins"]

    def test_nothing_enabled_falls_back_to_core(self) -> None:
        settings = Settings(targets=Targets(core=False, plugins=False, themes=False))
        assert resolve_components(["backups"], settings) == ["core"]


class TestInteractivePath:
    """start / poll."""

    def test_start_stores_job(self, service: JobService) -> None:
        job_id = service.start(["core"])
        assert job_id == "job1"
        assert service.state_store.get(f"{JOB_KEY_PREFIX}job1") is not None
        assert service.load(job_id).components == ["core"]

    def test_poll_until_complete(self, service: JobService) -> None:
        job_id = service.start(["core", "plugins"])
        polls = []
        while True:
            result = service.poll(job_id)
            polls.append(result)
            if result.completed:
                break

        assert [p.progress for p in polls] == sorted(p.progress for p in polls)
        final = polls[-1]
        assert final.progress == 100
        assert final.record_id == 1
        assert final.completed_at is not None
        assert set(final.results) == {"core", "plugins"}
        assert final.summary.startswith("WordPress core scan completed without integrity issues.")
        assert all(not p.results for p in polls[:-1])

        assert service.state_store.get(f"{JOB_KEY_PREFIX}{job_id}") is None
        assert service.results.get(1) is not None
        with pytest.raises(JobNotFoundError):
            service.poll(job_id)

    def test_unknown_job(self, service: JobService) -> None:
        with pytest.raises(JobNotFoundError, match=EXPIRED_MESSAGE):
            service.poll("never-started")

    def test_job_expires_without_polls(self, service: JobService, clock: FakeClock, settings: Settings) -> None:
        job_id = service.start(["core"])
        clock.now += settings.job_ttl
        with pytest.raises(JobNotFoundError):
            service.poll(job_id)

    def test_poll_refreshes_ttl(self, service: JobService, clock: FakeClock, settings: Settings) -> None:
        job_id = service.start(["core"])
        clock.now += settings.job_ttl - 1
        assert not service.poll(job_id).completed
        clock.now += settings.job_ttl - 1
        service.poll(job_id)

    def test_corrupt_state(self, service: JobService) -> None:
        service.state_store.set(f"{JOB_KEY_PREFIX}bad", {"component_states": {"core": {}}}, 60)
        with pytest.raises(JobStateError):
            service.load("bad")

    @pytest.mark.parametrize("job_id", ["../escape", "a/b", "with space"])
    def test_malformed_id_is_not_found(
        self, settings: Settings, fetcher: ManifestFetcher, clock: FakeClock,
        tmp_path: Path, job_id: str,
    ) -> None:
        service = make_service(settings, fetcher, clock, FileStateStore(tmp_path / "jobs", clock))
        with pytest.raises(JobNotFoundError, match=EXPIRED_MESSAGE):
            service.poll(job_id)


class TestSynchronousRun:
    """run() and its ceiling."""

    def test_runs_to_completion(self, service: JobService) -> None:
        seen: list[AdvanceResult] = []
        outcome = service.run(["core", "plugins", "themes"], on_progress=seen.append)

        assert outcome.completed
        assert outcome.steps == len(seen)
        assert outcome.record.status == "success"
        assert outcome.record.context == "manual"
        assert service.results.last()["summary"] == outcome.job.summary

    def test_drift_recorded_as_warning(self, service: JobService, wp_root: Path) -> None:
        (wp_root / "index.php").write_text("changed", encoding="utf-8")
        outcome = service.run(["core"])
        assert outcome.record.status == "warning"
        assert outcome.record.total_issues == 1

    def test_ceiling_records_partial_results(
        self, settings: Settings, fetcher: ManifestFetcher, clock: FakeClock
    ) -> None:
        limited = replace(settings, max_sync_steps=2, chunk_size=2)
        service = make_service(limited, fetcher, clock)
        outcome = service.run(["core", "plugins"])

        assert not outcome.completed
        assert outcome.steps == 2
        assert not outcome.job.completed
        record = outcome.record
        assert record.results["core"]["status"] == "processing"
        assert "plugins" not in record.results
        assert record.summary == record.results["core"]["summary"]
        assert "incomplete" in record.summary
        assert service.results.counts()[record.status] == 1


class TestScheduledRun:
    """The scheduled trigger."""

    def test_disabled_does_nothing(self, service: JobService) -> None:
        assert service.run_scheduled() is None
        assert service.results.last() is None

    def test_force_runs_with_scheduled_context(self, service: JobService) -> None:
        outcome = service.run_scheduled(force=True)
        assert outcome is not None
        assert outcome.record.context == JobContext.SCHEDULED.value
        assert outcome.record.components == ["core", "plugins", "themes"]

    def test_enabled_runs(self, settings: Settings, fetcher: ManifestFetcher, clock: FakeClock) -> None:
        service = make_service(replace(settings, daily_scan_enabled=True), fetcher, clock)
        outcome = service.run_scheduled()
        assert outcome is not None and outcome.completed


def test_from_settings(settings: Settings, fetcher: ManifestFetcher) -> None:
    service = JobService.from_settings(settings, fetcher)
    assert isinstance(service.state_store, MemoryStateStore)
    assert service.run(["plugins"]).completed
