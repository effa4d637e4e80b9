"""Settings for WPFortify, loaded from a YAML file.

Settings are resolved in three layers: built-in defaults, then the YAML
file (``wpfortify.yaml`` in the working directory, or an explicit path),
then CLI flags applied by the caller through ``Settings.with_overrides``.

Example ``wpfortify.yaml``::

    root: /var/www/html
    locale: de_DE
    daily_scan_enabled: true
    targets:
      core: true
      plugins: true
      themes: false
      third_party: false
    ignore:
      plugins: ["my-private-plugin/my-private-plugin.php"]
      themes: []
    chunk_size: 75
    timeout: 20
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from wpfortify.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "wpfortify.yaml"

# Components the engine knows how to verify, in their canonical order.
AVAILABLE_TARGETS: tuple[str, ...] = ("core", "plugins", "themes")

DEFAULT_CHUNK_SIZE = 75
DEFAULT_TIMEOUT = 20.0
DEFAULT_JOB_TTL = 900
DEFAULT_MAX_SYNC_STEPS = 5000
DEFAULT_STATE_DIR = "~/.cache/wpfortify"


@dataclass(frozen=True)
class Targets:
    """Which components a run checks when the caller selects none."""

    core: bool = True
    plugins: bool = True
    themes: bool = True
    third_party: bool = False

    def enabled(self) -> list[str]:
        """Return the enabled component ids in canonical order."""
        return [t for t in AVAILABLE_TARGETS if getattr(self, t)]


@dataclass(frozen=True)
class Settings:
    """Resolved WPFortify settings.

    Attributes:
        root: WordPress installation root (the directory holding
            ``wp-includes``).
        locale: Preferred checksum locale. Empty means use the locale the
            installation was packaged with.
        daily_scan_enabled: Whether the scheduled trigger should run.
        targets: Default component selection.
        ignore_plugins: Plugin keys (``dir/file.php``) never verified.
        ignore_themes: Theme stylesheets never verified.
        chunk_size: Core files compared per advance call.
        timeout: Manifest request timeout in seconds.
        job_ttl: Seconds an idle interactive job survives in the state store.
        max_sync_steps: Iteration ceiling for the scheduled path.
        state_dir: Directory for job state, history and baselines.
    """

    root: Path = field(default_factory=Path.cwd)
    locale: str = ""
    daily_scan_enabled: bool = False
    targets: Targets = field(default_factory=Targets)
    ignore_plugins: tuple[str, ...] = ()
    ignore_themes: tuple[str, ...] = ()
    chunk_size: int = DEFAULT_CHUNK_SIZE
    timeout: float = DEFAULT_TIMEOUT
    job_ttl: int = DEFAULT_JOB_TTL
    max_sync_steps: int = DEFAULT_MAX_SYNC_STEPS
    state_dir: Path = field(
        default_factory=lambda: Path(DEFAULT_STATE_DIR).expanduser()
    )

    def with_overrides(self, **overrides: Any) -> Settings:
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if "root" in changes:
            changes["root"] = Path(changes["root"])
        if "state_dir" in changes:
            changes["state_dir"] = Path(changes["state_dir"]).expanduser()
        return replace(self, **changes)


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from YAML, falling back to defaults.

    Args:
        path: Explicit settings file. When None, ``wpfortify.yaml`` in the
            current directory is used if it exists.

    Returns:
        The resolved ``Settings``.

    Raises:
        ConfigError: If an explicit file is missing, the YAML is malformed,
            or a value has the wrong type.
    """
    if path is None:
        candidate = Path.cwd() / DEFAULT_CONFIG_FILENAME
        if not candidate.is_file():
            return Settings()
        path = candidate
    elif not path.is_file():
        raise ConfigError(f"Settings file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read settings file {path}: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Settings file {path} must contain a mapping")

    logger.debug("Loaded settings from %s", path)
    return settings_from_dict(raw, base_dir=path.parent)


def settings_from_dict(raw: dict[str, Any], base_dir: Path | None = None) -> Settings:
    """Build ``Settings`` from a plain mapping (the parsed YAML document)."""
    defaults = Settings()
    base = base_dir or Path.cwd()

    root = raw.get("root")
    targets_raw = raw.get("targets") or {}
    ignore_raw = raw.get("ignore") or {}
    if not isinstance(targets_raw, dict) or not isinstance(ignore_raw, dict):
        raise ConfigError("'targets' and 'ignore' must be mappings")

    targets = Targets(**{
        name: bool(targets_raw.get(name, getattr(defaults.targets, name)))
        for name in ("core", "plugins", "themes", "third_party")
    })

    return Settings(
        root=(base / str(root)).resolve() if root else defaults.root,
        locale=str(raw.get("locale") or ""),
        daily_scan_enabled=bool(raw.get("daily_scan_enabled", False)),
        targets=targets,
        ignore_plugins=_string_tuple(ignore_raw.get("plugins"), "ignore.plugins"),
        ignore_themes=_string_tuple(ignore_raw.get("themes"), "ignore.themes"),
        chunk_size=_positive_int(raw, "chunk_size", defaults.chunk_size),
        timeout=_positive_float(raw, "timeout", defaults.timeout),
        job_ttl=_positive_int(raw, "job_ttl", defaults.job_ttl),
        max_sync_steps=_positive_int(raw, "max_sync_steps", defaults.max_sync_steps),
        state_dir=(
            Path(str(raw["state_dir"])).expanduser()
            if raw.get("state_dir") else defaults.state_dir
        ),
    )


def _string_tuple(value: Any, key: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigError(f"'{key}' must be a list")
    return tuple(str(v) for v in value)


def _positive_int(raw: dict[str, Any], key: str, default: int) -> int:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"'{key}' must be a positive integer, got {value!r}")
    return value


def _positive_float(raw: dict[str, Any], key: str, default: float) -> float:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"'{key}' must be a positive number, got {value!r}")
    return float(value)
