"""Tests for ``wpfortify baseline`` and scans that use local baselines."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner, Result

from tests.helpers import Invoke
from wpfortify.cli.main import cli

CUSTOM = "custom/custom.php"


@pytest.fixture
def third_party_config(tmp_path: Path, wp_root: Path) -> Path:
    config = tmp_path / "third-party.yaml"
    config.write_text(
        f"root: {wp_root}\ntargets:\n  core: false\n  themes: false\n  third_party: true\n",
        encoding="utf-8",
    )
    return config


def scan_plugins(runner: CliRunner, config: Path, state_dir: Path) -> Result:
    return runner.invoke(
        cli,
        ["--state-dir", str(state_dir), "--config", str(config), "scan", "--format", "json"],
    )


class TestBaselineCommand:
    def test_defaults_to_third_party_extensions(
        self, wpf: Invoke, wp_root: Path, state_dir: Path
    ) -> None:
        result = wpf("baseline", str(wp_root), "--format", "json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert [w["key"] for w in data["written"]] == [CUSTOM]
        assert data["failed"] == []
        assert Path(data["written"][0]["path"]).is_file()
        assert Path(data["written"][0]["path"]).is_relative_to(state_dir)

    def test_explicit_plugin(self, wpf: Invoke, wp_root: Path) -> None:
        result = wpf("baseline", str(wp_root), "--plugin", "hello-dolly/hello.php")
        assert result.exit_code == 0
        assert "Baseline written for hello-dolly/hello.php (1.7.2)." in result.output

    def test_unknown_extension(self, wpf: Invoke, wp_root: Path) -> None:
        result = wpf("baseline", str(wp_root), "--plugin", "nope/nope.php", "--format", "json")
        assert result.exit_code == 2
        assert json.loads(result.stdout)["failed"] == [
            {"extension": "plugin nope/nope.php", "error": "not installed"},
        ]

    def test_delete_removes_baseline(self, wpf: Invoke, wp_root: Path) -> None:
        written = json.loads(wpf("baseline", str(wp_root), "--format", "json").stdout)["written"]
        path = Path(written[0]["path"])

        result = wpf("baseline", str(wp_root), "--delete", "--plugin", CUSTOM, "--format", "json")

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["deleted"] == [{"kind": "plugins", "key": CUSTOM}]
        assert not path.exists()

    def test_delete_without_baseline(self, wpf: Invoke, wp_root: Path) -> None:
        result = wpf("baseline", str(wp_root), "--delete")
        assert result.exit_code == 2
        assert f"Error: {CUSTOM}: no baseline" in result.output


class TestScanWithBaseline:
    """Third-party plugins verified against their local baseline."""

    def test_without_baseline_skipped(
        self, runner: CliRunner, third_party_config: Path, state_dir: Path
    ) -> None:
        data = json.loads(scan_plugins(runner, third_party_config, state_dir).stdout)
        assert CUSTOM in [s["key"] for s in data["results"]["plugins"]["skipped"]]

    def test_baseline_used(
        self, runner: CliRunner, wpf: Invoke, wp_root: Path,
        third_party_config: Path, state_dir: Path,
    ) -> None:
        wpf("baseline", str(wp_root))
        result = scan_plugins(runner, third_party_config, state_dir)
        assert result.exit_code == 0, result.output
        items = {i["key"]: i for i in json.loads(result.stdout)["results"]["plugins"]["items"]}
        assert items[CUSTOM]["status"] == "ok"
        assert items[CUSTOM]["source"] == "baseline"

    def test_baseline_detects_tampering(
        self, runner: CliRunner, wpf: Invoke, wp_root: Path,
        third_party_config: Path, state_dir: Path,
    ) -> None:
        wpf("baseline", str(wp_root))
        (wp_root / "wp-content/plugins/custom/backdoor.php").write_text("<?php", encoding="utf-8")
        result = scan_plugins(runner, third_party_config, state_dir)
        assert result.exit_code == 1
        items = {i["key"]: i for i in json.loads(result.stdout)["results"]["plugins"]["items"]}
        assert items[CUSTOM]["added"] == ["backdoor.php"]
