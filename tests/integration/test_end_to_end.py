"""End-to-end scenarios: installation -> manifests -> job -> persisted record."""
from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from tests.helpers import FakeOrg, WP_VERSION, build_site, md5, write_files
from wpfortify.config import Settings
from wpfortify.core.orchestrator import Orchestrator, create_job, default_scanners
from wpfortify.jobs.service import JobService
from wpfortify.manifest.fetcher import ManifestFetcher
from wpfortify.site.installation import Installation

VERSION_PHP = f"<?php\n$wp_version = '{WP_VERSION}';\n"


def _service(settings: Settings, org: FakeOrg) -> tuple[JobService, ManifestFetcher]:
    fetcher = org.fetcher()
    return JobService.from_settings(settings, fetcher), fetcher


def test_core_only_missing_and_unexpected(tmp_path: Path) -> None:
    root = tmp_path / "site"
    write_files(root, {
        "wp-includes/version.php": VERSION_PHP,
        "a.php": "alpha",
        "c.php": "intruder",
    })
    org = FakeOrg()
    org.core[(WP_VERSION, "en_US")] = {
        "wp-includes/version.php": md5(VERSION_PHP),
        "a.php": md5("alpha"),
        "b.php": md5("bravo"),
    }
    service, fetcher = _service(Settings(root=root, state_dir=tmp_path / "state"), org)
    with fetcher:
        outcome = service.run(["core"])

    core = outcome.record.results["core"]
    assert core["modified"] == []
    assert core["missing"] == ["b.php"]
    assert core["added"] == ["c.php"]
    assert "issues detected" in core["summary"]
    assert outcome.record.status == "warning"
    assert outcome.record.total_issues == 2


def test_plugin_without_version_is_skipped(tmp_path: Path) -> None:
    root = build_site(tmp_path / "site")
    write_files(root, {
        "wp-content/plugins/unversioned/unversioned.php": "<?php\n/*\nPlugin Name: Unversioned\n*/\n",
    })
    service, fetcher = _service(Settings(root=root, state_dir=tmp_path / "state"), FakeOrg.for_site())
    with fetcher:
        outcome = service.run(["plugins"])

    plugins = outcome.record.results["plugins"]
    skipped = {s["key"]: s["reason"] for s in plugins["skipped"]}
    assert skipped["unversioned/unversioned.php"]
    assert plugins["totals"]["skipped"] == len(skipped) == 2
    assert plugins["totals"]["issues"] == 0
    assert outcome.record.status == "success"


def test_core_failure_does_not_stop_the_job(tmp_path: Path) -> None:
    root = build_site(tmp_path / "site")
    org = FakeOrg.for_site()
    org.core.clear()
    settings = Settings(root=root, state_dir=tmp_path / "state", locale="de_DE")
    service, fetcher = _service(settings, org)
    with fetcher:
        outcome = service.run(["core", "plugins"])

    assert outcome.completed
    results = outcome.record.results
    assert results["core"]["status"] == "error"
    assert results["plugins"]["status"] == "completed"
    assert results["plugins"]["summary"] in outcome.record.summary
    assert [e["component"] for e in outcome.record.errors] == ["core"]
    assert outcome.record.status == "error"
    locales = [r.url.params.get("locale") for r in org.requests if r.url.path.startswith("/core/")]
    assert locales == ["de_DE", "en_US"]


def test_advance_after_completion_is_a_no_op(tmp_path: Path) -> None:
    root = build_site(tmp_path / "site")
    org = FakeOrg.for_site()
    settings = Settings(root=root, state_dir=tmp_path / "state")
    with org.fetcher() as fetcher:
        orchestrator = Orchestrator(default_scanners(settings, Installation(root), fetcher))
        job = create_job(["core", "themes"])
        while not (step := orchestrator.advance(job)).completed:
            job = step.job
        job = step.job
        requests_before = len(org.requests)

        again = orchestrator.advance(job)

    assert again.completed
    assert again.summary == step.summary
    assert again.job.results == job.results
    assert len(org.requests) == requests_before


def test_scheduled_ceiling_persists_partial_results(tmp_path: Path) -> None:
    root = build_site(tmp_path / "site")
    settings = replace(
        Settings(root=root, state_dir=tmp_path / "state"),
        daily_scan_enabled=True,
        max_sync_steps=4,
        chunk_size=1,
    )
    service, fetcher = _service(settings, FakeOrg.for_site())
    with fetcher:
        outcome = service.run_scheduled()

    assert outcome is not None
    assert not outcome.completed
    record = outcome.record
    assert record.context == "scheduled"
    assert list(record.results) == ["core"]
    assert record.results["core"]["status"] == "processing"
    assert service.results.last()["results"]["core"]["status"] == "processing"
