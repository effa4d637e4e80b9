"""Tests for settings loading and CLI overrides."""

from __future__ import annotations

from pathlib import Path

import pytest

from wpfortify.config import (
    DEFAULT_CHUNK_SIZE,
    Settings,
    Targets,
    load_settings,
    settings_from_dict,
)
from wpfortify.exceptions import ConfigError


class TestLoadSettings:
    """YAML file resolution."""

    def test_defaults_without_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        settings = load_settings()
        assert settings == Settings(root=settings.root, state_dir=settings.state_dir)
        assert settings.targets.enabled() == ["core", "plugins", "themes"]
        assert settings.chunk_size == DEFAULT_CHUNK_SIZE

    def test_file_in_working_directory(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "wpfortify.yaml").write_text("locale: fr_FR\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        assert load_settings().locale == "fr_FR"

    def test_explicit_file(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text(
            "root: site\n"
            "daily_scan_enabled: true\n"
            "targets:\n  themes: false\n  third_party: true\n"
            "ignore:\n  plugins: [a/a.php]\n"
            "chunk_size: 10\n"
            "timeout: 5\n",
            encoding="utf-8",
        )
        settings = load_settings(path)
        assert settings.root == (tmp_path / "site").resolve()
        assert settings.daily_scan_enabled
        assert settings.targets == Targets(core=True, plugins=True, themes=False, third_party=True)
        assert settings.ignore_plugins == ("a/a.php",)
        assert settings.chunk_size == 10
        assert settings.timeout == 5.0

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_settings(path).locale == ""

    def test_missing_explicit_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "absent.yaml")

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("targets: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_settings(path)

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(path)


class TestValidation:
    @pytest.mark.parametrize("raw", [
        {"chunk_size": 0},
        {"chunk_size": "10"},
        {"chunk_size": True},
        {"timeout": -1},
        {"job_ttl": 1.5},
        {"targets": ["core"]},
        {"ignore": {"plugins": "a/a.php"}},
    ])
    def test_invalid_values(self, raw: dict) -> None:
        with pytest.raises(ConfigError):
            settings_from_dict(raw)


class TestOverrides:
    def test_none_values_ignored(self) -> None:
        base = Settings(locale="de_DE")
        assert base.with_overrides(locale=None, root=None) == base

    def test_paths_coerced(self, tmp_path: Path) -> None:
        settings = Settings().with_overrides(root=str(tmp_path), state_dir=str(tmp_path / "s"))
        assert settings.root == tmp_path
        assert settings.state_dir == tmp_path / "s"

    def test_base_settings_unchanged(self) -> None:
        base = Settings()
        base.with_overrides(locale="ja")
        assert base.locale == ""
